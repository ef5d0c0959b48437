"""
Field Report Validation
=======================

Mandatory-field rules for field reports. All violations are collected and
reported together so the technician can fix the form in one pass.
"""

from typing import Any, List, Mapping

from servicedesk.config import ReportType
from servicedesk.core import ValidationException


class FieldReportValidator:
    """Stateless checks applied before a report is persisted."""

    REQUIRED_FIELDS = ("work_performed", "findings")

    @staticmethod
    def _is_blank(value: Any) -> bool:
        return value is None or (isinstance(value, str) and not value.strip())

    @classmethod
    def missing_fields(cls, data: Mapping[str, Any]) -> List[str]:
        missing = [name for name in cls.REQUIRED_FIELDS if cls._is_blank(data.get(name))]

        if ReportType(data.get("report_type", ReportType.MAINTENANCE)) == ReportType.INSTALLATION:
            if cls._is_blank(data.get("installation_details")):
                missing.append("installation_details")

        if data.get("cannot_resolve") and not data.get("ticket_id"):
            missing.append("ticket_id")

        return missing

    @classmethod
    def validate(cls, data: Mapping[str, Any]) -> None:
        """
        Raises:
            ValidationException: naming every missing field
        """
        missing = cls.missing_fields(data)
        if missing:
            raise ValidationException(
                f"Field report is missing required fields: {', '.join(missing)}",
                fields=missing,
            )
