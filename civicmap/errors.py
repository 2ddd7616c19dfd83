"""Failures raised by the lifecycle and snapshot operations."""


class IssueMapError(Exception):
    """Base class for errors surfaced to the caller."""

    pass


class IssueNotFoundError(IssueMapError):
    """The referenced issue does not exist."""

    def __init__(self, issue_id: str):
        super().__init__(f"Issue {issue_id} not found")
        self.issue_id = issue_id


class DuplicateVoteError(IssueMapError):
    """The voter already cast this kind of vote on the issue."""

    def __init__(self, issue_id: str, voter_token: str, kind: str):
        super().__init__(f"Voter already cast a '{kind}' vote on issue {issue_id}")
        self.issue_id = issue_id
        self.voter_token = voter_token
        self.kind = kind


class InvalidInputError(IssueMapError):
    """Rejected before touching the store."""

    pass


class StoreFailureError(IssueMapError):
    """The transaction could not commit and was rolled back."""

    pass
