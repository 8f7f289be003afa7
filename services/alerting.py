"""Operator notifications for threshold violations and element deletions."""

from __future__ import annotations

import logging
from typing import Iterable

from models.records import Operator

logger = logging.getLogger(__name__)


class AlertingService:
    """Dispatches notifications; delivery is recorded in the service log."""

    def notify_threshold_violation(self, operators: Iterable[Operator], sensor_code: str) -> int:
        """Alert every operator by email, and by SMS when a phone number is known.

        Returns the number of operators notified.
        """
        logger.warning(
            "Measured a value out of threshold bounds, alerting operators",
            extra={"entity_code": sensor_code},
        )
        notified = 0
        for operator in operators:
            self._send_email(operator)
            if operator.phone_number:
                self._send_sms(operator)
            notified += 1
        return notified

    def notify_deletion(self, username: str, code: str, element_kind: str) -> None:
        logger.info(
            "Element deleted",
            extra={"username": username, "entity_code": code, "element_kind": element_kind},
        )

    def _send_email(self, operator: Operator) -> None:
        logger.info("Sending email", extra={"recipient": operator.email})

    def _send_sms(self, operator: Operator) -> None:
        logger.info(
            "Sending SMS",
            extra={"recipient": operator.email, "phone_number": operator.phone_number},
        )
