"""
Errors surfaced to the code driving a client view
"""


class EngagementClientError(Exception):
    """Base class for engagement client errors"""

    retryable = False


class AuthenticationRequiredError(EngagementClientError):
    """The session has no authenticated actor, or the service rejected it"""


class TargetNotFoundError(EngagementClientError):
    """The post does not exist (or was deleted while the request was in flight)"""

    def __init__(self, target_id: str):
        super().__init__(f"Post {target_id} not found")
        self.target_id = target_id


class TransientNetworkError(EngagementClientError):
    """Connection failure, timeout or server error; the user may try again"""

    retryable = True


class ServiceResponseError(EngagementClientError):
    """Any other non-success response from the Engagement Service"""

    def __init__(self, status_code: int, detail: str = ""):
        super().__init__(f"Engagement Service returned {status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail
