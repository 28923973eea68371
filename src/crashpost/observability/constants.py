"""Constants for observability layer."""

# Client identifier attached to every log entry and report
CLIENT_NAME = "crashpost"

CLIENT_URL = "https://pypi.org/project/crashpost/"


# Log event names following the pattern: {domain}.{action}.{result}
class LogEvents:
    """Standardized log event names."""

    # Report transmission events
    REPORT_SEND_SUCCEEDED = "report.send.succeeded"
    REPORT_SEND_FAILED = "report.send.failed"
    REPORT_SEND_SKIPPED = "report.send.skipped"
    REPORT_SEND_VETOED = "report.send.vetoed"
    REPORT_SEND_EXCLUDED = "report.send.excluded"

    # Background pool events
    REPORT_BACKGROUND_SCHEDULED = "report.background.scheduled"
    REPORT_BACKGROUND_FAILED = "report.background.failed"

    # Capture events
    REQUEST_CAPTURE_FAILED = "request.capture.failed"
    REQUEST_FORM_SKIPPED = "request.form.skipped"

    # Framework integration events
    INTEGRATION_ATTACHED = "integration.attached"
    INTEGRATION_DETACHED = "integration.detached"


# Header carrying the static API key on outbound reports
API_KEY_HEADER = "X-ApiKey"

# Attribute set on exception instances once they have been reported
SENT_FLAG_ATTRIBUTE = "__crashpost_sent__"
