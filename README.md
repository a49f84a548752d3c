# mergebot

Building blocks of a merge bot for GitHub repositories. The package covers the
parts of such a bot that deal with GitHub and with repository settings:

- reading the per-repository configuration file (`mergebot.config`);
- label triggers and label modifications (`mergebot.labels`);
- common GitHub types: repository names, users, commits, branches and pull
  requests (`mergebot.github`);
- loading review and try permissions from a team permissions API
  (`mergebot.permissions`);
- checking webhook signatures and turning GitHub webhook payloads into typed
  events (`mergebot.webhook`, `mergebot.webhook_parse`, `mergebot.events`);
- an ASGI application that receives webhooks and queues the events
  (`mergebot.server`);
- a client for one repository on the GitHub REST API: merging branches, moving
  branches, labels, comments, check suites and workflow runs (`mergebot.api`);
- the data model of pull requests, builds, workflows and tree state
  (`mergebot.models`).

## Installation

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Repository configuration

The bot reads its settings from a TOML file named `mergebot.toml`
(`mergebot.config.CONFIG_FILE_PATH`) at the root of the repository:

```toml
timeout = 3600        # seconds a build may run; defaults to 3600
min_ci_time = 600     # optional minimum CI running time, in seconds

[labels]
approve = ["+approved"]
try = ["+foo", "-bar"]
try_succeed = ["+foobar"]
try_failed = []
```

The label keys are `approve`, `unapprove`, `try`, `try_succeed` and
`try_failed`; they map to the members of `mergebot.labels.LabelTrigger`. Each
entry starts with `+` (add the label) or `-` (remove it). When `approve` is set
and `unapprove` is not, `unapprove` gets the inverse of the `approve`
modifications. Unknown top-level keys are ignored.

```python
from mergebot.config import load_config

with open("mergebot.toml") as file:
    config = load_config(file.read())
print(config.timeout, config.min_ci_time, config.labels)
```

`RepositoryConfig.from_mapping` builds the same object from already parsed
data. Invalid content raises `mergebot.config.ConfigError`.

## Permissions

```python
from mergebot.github import GithubRepoName
from mergebot.permissions import PermissionType, TeamApiClient

team_api = TeamApiClient("https://team-api.example.com")
permissions = await team_api.load_permissions(GithubRepoName("owner", "repo"))
permissions.has_permission(1234, PermissionType.TRY)
```

Users are loaded from `<base_url>/v1/permissions/bors.<name>.<review|try>.json`,
where dashes in the repository name become underscores, and read from its
`github_ids` list. Failures raise `PermissionsError`. An `httpx.AsyncClient`
may be passed as the second argument; otherwise a client is opened per request.

## Receiving webhooks

```python
import asyncio
from mergebot.server import ServerState, create_app
from mergebot.webhook import WebhookSecret

repository_events = asyncio.Queue(maxsize=1024)
global_events = asyncio.Queue(maxsize=1024)

app = create_app(
    ServerState(repository_events, global_events, WebhookSecret("secret"))
)
```

Serve `app` with any ASGI server. At most 100 requests are handled at once.

- `POST /github` reads the body (at most 10 MiB), checks the
  `x-hub-signature-256` header (HMAC-SHA256 of the body under the secret),
  parses the payload named by the `x-github-event` header and puts the
  resulting event on the matching queue: `InstallationsChanged` on the global
  queue, all other events on the repository queue. It answers 200 once the
  event is queued, 400 for bodies that are too large, bad signatures, a missing
  event header or malformed payloads, and an empty 200 for events the bot does
  not react to.
- `GET /health` answers with an empty 200 response.

The same checks are available without a server:
`mergebot.webhook.extract_webhook_event(headers, body, secret)` returns the
event or raises `WebhookRejected` carrying the status code, and
`mergebot.webhook_parse.parse_webhook_event(event_type, body)` parses a payload
alone, returning `None` for ignored events and raising `WebhookError` for
malformed ones.

Handled event types: `issue_comment` (created comments on pull requests),
`pull_request` (`opened`, `edited`, `synchronize`), `pull_request_review`
(`submitted`), `pull_request_review_comment` (`created`), `installation` and
`installation_repositories`, `workflow_run` (`requested`, `completed`),
`check_run` (`created`, from apps other than GitHub's own) and `check_suite`
(`completed`).

## Talking to GitHub

`mergebot.api.GithubRepositoryClient` wraps an authenticated
`httpx.AsyncClient` whose base URL is the GitHub API:

```python
import httpx
from mergebot.api import GithubRepositoryClient
from mergebot.github import GithubRepoName, PullRequestNumber

http = httpx.AsyncClient(
    base_url="https://api.github.com",
    headers={"Authorization": "Bearer token"},
)
repo = GithubRepositoryClient(
    http, GithubRepoName("owner", "repo"), app_html_url="https://github.com/apps/my-bot"
)
await repo.post_comment(PullRequestNumber(5), "hello")
```

Its coroutines are `load_config`, `get_branch_sha`, `get_pull_request`,
`post_comment`, `set_branch_to_sha`, `merge_branches`,
`get_check_suites_for_commit`, `cancel_workflows`, `add_labels`,
`remove_labels` and `is_comment_internal`; `get_workflow_url` and
`get_workflow_urls` build links to workflow runs. HTTP failures raise
`httpx.HTTPStatusError`. Merge failures raise subclasses of `MergeError`
(`MergeNotFound`, `MergeConflict`, `AlreadyMerged`, `MergeUnknownError`,
`MergeNetworkError`). Setting a branch first force-updates it and creates it
when it does not exist; failures raise `BranchUpdateError`. Removing a label
that the pull request does not carry is not an error.

## What this package does not do

The package stops at receiving events and offering the operations above. It
does not consume the queued events, parse or execute bot commands in comments,
run try builds or merge queues, authenticate as a GitHub App or discover its
installations, and it has no database: the records in `mergebot.models` are
plain data classes with nothing that stores or loads them. There is no
command-line entry point.