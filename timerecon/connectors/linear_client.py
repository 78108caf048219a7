"""Linear GraphQL client: issue estimate lookup and comment + label annotation."""

from __future__ import annotations

import logging
from types import TracebackType
from typing import TYPE_CHECKING, Any, Self

import httpx
from pydantic import BaseModel, Field

from timerecon.errors import AnnotationError, IssueTrackerError
from timerecon.http_guard import create_guarded_client
from timerecon.models import IssueSnapshot

if TYPE_CHECKING:
    from collections.abc import Iterable

    from timerecon.config import LinearCredentials, Settings

__all__ = [
    "LINEAR_API_URL",
    "GraphQLRequest",
    "LinearClient",
    "build_annotate_mutation",
    "build_issue_query",
    "create_linear_client",
]

logger = logging.getLogger(__name__)

LINEAR_API_URL = "https://api.linear.app/graphql"

ISSUE_ESTIMATE_QUERY = """
query IssueEstimate($id: String!) {
  issue(id: $id) {
    estimate
    labels {
      nodes {
        id
      }
    }
  }
}
"""

ANNOTATE_ISSUE_MUTATION = """
mutation AnnotateIssue($issueId: String!, $body: String!, $labelIds: [String!]!) {
  commentCreate(input: {issueId: $issueId, body: $body}) {
    success
  }
  issueUpdate(id: $issueId, input: {labelIds: $labelIds}) {
    success
  }
}
"""


class GraphQLRequest(BaseModel):
    """A GraphQL document with its variables; values never enter the query text."""

    query: str
    operation_name: str = Field(serialization_alias="operationName")
    variables: dict[str, Any]

    def payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


def build_issue_query(issue_id: str) -> GraphQLRequest:
    return GraphQLRequest(
        query=ISSUE_ESTIMATE_QUERY,
        operation_name="IssueEstimate",
        variables={"id": issue_id},
    )


def build_annotate_mutation(
    issue_id: str, comment: str, label_ids: Iterable[str]
) -> GraphQLRequest:
    return GraphQLRequest(
        query=ANNOTATE_ISSUE_MUTATION,
        operation_name="AnnotateIssue",
        variables={
            "issueId": issue_id,
            "body": comment,
            "labelIds": sorted(label_ids),
        },
    )


def _first_error(data: dict[str, Any]) -> str | None:
    errors = data.get("errors") or []
    if not errors:
        return None
    return str(errors[0].get("message", "unknown GraphQL error"))


class LinearClient:
    """Linear API client: 5s connect, 15s read."""

    def __init__(
        self, credentials: LinearCredentials, *, api_url: str = LINEAR_API_URL
    ) -> None:
        self.credentials = credentials
        self.api_url = api_url
        self.client = create_guarded_client(
            timeout=httpx.Timeout(connect=5.0, read=15.0, write=10.0, pool=10.0),
            headers={
                "Content-Type": "application/json",
                "Authorization": credentials.api_key,
            },
        )

    def _post(self, request: GraphQLRequest) -> dict[str, Any]:
        response = self.client.post(self.api_url, json=request.payload())
        response.raise_for_status()
        try:
            return response.json()  # type: ignore[no-any-return]
        except ValueError as e:
            msg = f"Linear returned a non-JSON response (HTTP {response.status_code})"
            raise IssueTrackerError(msg) from e

    def get_issue(self, issue_id: str) -> IssueSnapshot | None:
        """Fetch estimate and label ids; None when Linear reports errors.

        HTTP failures raise httpx errors and an unreadable body raises
        IssueTrackerError; GraphQL `errors` are a soft failure.
        """
        data = self._post(build_issue_query(issue_id))

        error = _first_error(data)
        if error is not None:
            logger.warning("Error fetching Linear issue %s: %s", issue_id, error)
            return None

        issue = (data.get("data") or {}).get("issue")
        if issue is None:
            return None

        nodes = (issue.get("labels") or {}).get("nodes") or []
        return IssueSnapshot(
            issue_id=issue_id,
            estimate=issue.get("estimate"),
            label_ids=[node["id"] for node in nodes],
        )

    def annotate(self, issue_id: str, comment: str, label_ids: Iterable[str]) -> None:
        """Create the comment and replace the label set in one mutation.

        Raises:
            AnnotationError: On transport errors, GraphQL errors, or unless both
                commentCreate and issueUpdate report success
        """
        request = build_annotate_mutation(issue_id, comment, label_ids)
        try:
            data = self._post(request)
        except (httpx.HTTPError, IssueTrackerError) as e:
            msg = f"Failed to update Linear issue {issue_id}: {e}"
            raise AnnotationError(msg) from e

        error = _first_error(data)
        if error is not None:
            logger.error("Error updating Linear issue %s: %s", issue_id, error)
            raise AnnotationError(error)

        result = data.get("data") or {}
        comment_success = bool((result.get("commentCreate") or {}).get("success"))
        label_success = bool((result.get("issueUpdate") or {}).get("success"))

        if not (comment_success and label_success):
            msg = (
                f"Failed to update Linear issue {issue_id} "
                f"(comment={comment_success}, labels={label_success})"
            )
            raise AnnotationError(msg)

    def close(self) -> None:
        """Close the HTTP client."""
        self.client.close()

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()


def create_linear_client(settings: Settings) -> LinearClient:
    """Create Linear client from settings."""
    return LinearClient(settings.linear)
