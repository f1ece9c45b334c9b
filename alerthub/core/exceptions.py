"""
Service-level exceptions.

Routes translate these into HTTP errors; everything else in the alert
pipeline degrades to defaults instead of raising.
"""


class AlertHubError(Exception):
    """Base class for errors raised by alerthub services."""


class ReportNotFoundError(AlertHubError):
    def __init__(self, report_id: str):
        super().__init__(f"Fraud report not found: {report_id}")
        self.report_id = report_id


class AlertNotFoundError(AlertHubError):
    def __init__(self, alert_id: str):
        super().__init__(f"Alert not found: {alert_id}")
        self.alert_id = alert_id


class UserNotFoundError(AlertHubError):
    def __init__(self, user_id: str):
        super().__init__(f"User not found: {user_id}")
        self.user_id = user_id


class RecipientLookupError(AlertHubError):
    """
    Data-layer failure while scanning for alert recipients.

    Aborts the dispatch pass for one report; report creation itself
    is not affected.
    """


class ReportUpdateConflictError(AlertHubError):
    """The report kept changing underneath a verification write."""

    def __init__(self, report_id: str):
        super().__init__(f"Fraud report changed during update, try again: {report_id}")
        self.report_id = report_id
