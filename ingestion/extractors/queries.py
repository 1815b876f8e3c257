"""
GraphQL documents for the supported query types.

Every document takes $owner and $name and is rooted at `repository`.
"""

from typing import Dict

from models.base import QueryType

GET_REPO_DATA_ARTIFACTS = """
query GetRepoDataArtifacts($owner: String!, $name: String!) {
  repository(owner: $owner, name: $name) {
    __typename
    id
    name
    nameWithOwner
    releases(last: 5, orderBy: {field: CREATED_AT, direction: DESC}) {
      nodes {
        __typename
        id
        name
        tagName
        url
        createdAt
        releaseAssets(first: 50) {
          nodes {
            __typename
            id
            name
            downloadUrl
          }
        }
      }
    }
  }
}
"""

GET_REPO_DATA_EXTENDED_INFO = """
query GetRepoDataExtendedInfo($owner: String!, $name: String!) {
  repository(owner: $owner, name: $name) {
    __typename
    id
    name
    nameWithOwner
    url
    description
    hasVulnerabilityAlertsEnabled
    licenseInfo {
      key
      name
      spdxId
    }
    defaultBranchRef {
      name
      branchProtectionRule {
        __typename
        allowsDeletions
        allowsForcePushes
        dismissesStaleReviews
        isAdminEnforced
        requiresStatusChecks
        requiresStrictStatusChecks
        requiresCodeOwnerReviews
        requiredApprovingReviewCount
        pattern
      }
    }
    branchProtectionRules(first: 10) {
      nodes {
        __typename
        allowsDeletions
        allowsForcePushes
        dismissesStaleReviews
        isAdminEnforced
        requiresStatusChecks
        requiresStrictStatusChecks
        requiresCodeOwnerReviews
        requiredApprovingReviewCount
        pattern
      }
    }
    releases(last: 5, orderBy: {field: CREATED_AT, direction: DESC}) {
      nodes {
        __typename
        id
        name
        tagName
        url
        createdAt
        releaseAssets(first: 50) {
          nodes {
            __typename
            id
            name
            downloadUrl
          }
        }
      }
    }
    workflows: object(expression: "HEAD:.github/workflows") {
      __typename
      ... on Tree {
        entries {
          name
          object {
            __typename
            ... on Blob {
              text
            }
          }
        }
      }
    }
  }
}
"""

QUERIES: Dict[QueryType, str] = {
    QueryType.ARTIFACTS: GET_REPO_DATA_ARTIFACTS,
    QueryType.EXTENDED_INFO: GET_REPO_DATA_EXTENDED_INFO,
}
