import base64
import json
from datetime import timedelta

import httpx
import pytest
import respx

from mergebot.api import (
    AlreadyMerged,
    BranchNotFound,
    BranchUpdateError,
    CheckSuite,
    CheckSuiteStatus,
    GithubRepositoryClient,
    MergeConflict,
    MergeError,
    MergeNetworkError,
    MergeNotFound,
    MergeUnknownError,
    merge_branches,
    set_branch_to_commit,
)
from mergebot.config import CONFIG_FILE_PATH, ConfigError
from mergebot.events import PullRequestComment
from mergebot.github import CommitSha, GithubRepoName, GithubUser, PullRequestNumber
from mergebot.labels import LabelModification, LabelTrigger

API = "https://api.github.com"
APP_URL = "https://github.com/apps/mergebot"
REPO = "/repos/owner/repo"


def make_client(repository_html_url=None):
    return GithubRepositoryClient(
        httpx.AsyncClient(base_url=API),
        GithubRepoName("Owner", "Repo"),
        APP_URL,
        repository_html_url=repository_html_url,
    )


def make_comment(html_url):
    return PullRequestComment(
        repository=GithubRepoName("owner", "repo"),
        author=GithubUser(id=1, username="someone", html_url=html_url),
        pr_number=PullRequestNumber(5),
        text="hello",
        html_url="https://github.com/owner/repo/pull/5#issuecomment-1",
    )


@pytest.mark.asyncio
async def test_is_comment_internal():
    client = make_client()
    assert await client.is_comment_internal(make_comment(APP_URL)) is True
    assert await client.is_comment_internal(make_comment("https://github.com/someone")) is False


@pytest.mark.asyncio
async def test_merge_branches_success_sends_request():
    client = make_client()
    with respx.mock(base_url=API) as mock:
        route = mock.post(f"{REPO}/merges").mock(
            return_value=httpx.Response(201, json={"sha": "abc123"})
        )
        sha = await client.merge_branches("main", CommitSha("def456"), "Merge it")
    assert sha == CommitSha("abc123")
    body = json.loads(route.calls.last.request.content)
    assert body == {"base": "main", "head": "def456", "commit_message": "Merge it"}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("status", "error", "message"),
    [
        (404, MergeNotFound, "Branch not found"),
        (409, MergeConflict, "Merge conflict"),
        (204, AlreadyMerged, "Branch was already merged"),
    ],
)
async def test_merge_branches_known_errors(status, error, message):
    client = make_client()
    with respx.mock(base_url=API) as mock:
        mock.post(f"{REPO}/merges").mock(return_value=httpx.Response(status))
        with pytest.raises(error) as info:
            await merge_branches(client, "main", CommitSha("def456"), "msg")
    assert str(info.value) == message
    assert isinstance(info.value, MergeError)


@pytest.mark.asyncio
async def test_merge_branches_unknown_status():
    client = make_client()
    with respx.mock(base_url=API) as mock:
        mock.post(f"{REPO}/merges").mock(return_value=httpx.Response(500, text="boom"))
        with pytest.raises(MergeUnknownError) as info:
            await merge_branches(client, "main", CommitSha("def456"), "msg")
    assert info.value.status == 500
    assert info.value.text == "boom"


@pytest.mark.asyncio
async def test_merge_branches_invalid_success_body():
    client = make_client()
    with respx.mock(base_url=API) as mock:
        mock.post(f"{REPO}/merges").mock(return_value=httpx.Response(201, text="not json"))
        with pytest.raises(MergeUnknownError) as info:
            await merge_branches(client, "main", CommitSha("def456"), "msg")
    assert info.value.status == 201


@pytest.mark.asyncio
async def test_merge_branches_network_error():
    client = make_client()
    with respx.mock(base_url=API) as mock:
        mock.post(f"{REPO}/merges").mock(side_effect=httpx.ConnectError("unreachable"))
        with pytest.raises(MergeNetworkError) as info:
            await merge_branches(client, "main", CommitSha("def456"), "msg")
    assert isinstance(info.value.error, httpx.ConnectError)


@pytest.mark.asyncio
async def test_set_branch_updates_existing_branch():
    client = make_client()
    with respx.mock(base_url=API) as mock:
        update_route = mock.request("PATCH", f"{REPO}/git/refs/heads/try").mock(
            return_value=httpx.Response(200)
        )
        create = mock.post(f"{REPO}/git/refs").mock(return_value=httpx.Response(201))
        result = await client.set_branch_to_sha("try", CommitSha("abc"))
    assert result is None
    assert update_route.call_count == 1
    assert json.loads(update_route.calls.last.request.content) == {"sha": "abc", "force": True}
    assert create.call_count == 0


@pytest.mark.asyncio
async def test_set_branch_creates_missing_branch():
    client = make_client()
    with respx.mock(base_url=API) as mock:
        update_route = mock.request("PATCH", f"{REPO}/git/refs/heads/try").mock(
            return_value=httpx.Response(422)
        )
        create = mock.post(f"{REPO}/git/refs").mock(return_value=httpx.Response(201))
        result = await set_branch_to_commit(client, "try", CommitSha("abc"))
    assert result is None
    assert update_route.call_count == 1
    assert json.loads(create.calls.last.request.content) == {
        "ref": "refs/heads/try",
        "sha": "abc",
    }


@pytest.mark.asyncio
async def test_set_branch_creation_failure():
    client = make_client()
    with respx.mock(base_url=API) as mock:
        mock.request("PATCH", f"{REPO}/git/refs/heads/try").mock(
            return_value=httpx.Response(422)
        )
        mock.post(f"{REPO}/git/refs").mock(return_value=httpx.Response(500))
        with pytest.raises(BranchUpdateError) as info:
            await set_branch_to_commit(client, "try", CommitSha("abc"))
    assert not isinstance(info.value, BranchNotFound)
    assert str(info.value).startswith("Unknown error: Cannot create branch")


def test_branch_not_found_message():
    assert str(BranchNotFound("try")) == "Branch try was not found"


@pytest.mark.asyncio
async def test_get_check_suites_filters_branch_and_maps_status():
    client = make_client()
    suites = {
        "check_suites": [
            {"conclusion": "success", "head_branch": "try"},
            {"conclusion": "timed_out", "head_branch": "try"},
            {"conclusion": None, "head_branch": "try"},
            {"conclusion": "something_new", "head_branch": "try"},
            {"conclusion": "success", "head_branch": "other"},
        ]
    }
    with respx.mock(base_url=API) as mock:
        mock.get(f"{REPO}/commits/abc/check-suites").mock(
            return_value=httpx.Response(200, json=suites)
        )
        result = await client.get_check_suites_for_commit("try", CommitSha("abc"))
    assert result == [
        CheckSuite(CheckSuiteStatus.SUCCESS),
        CheckSuite(CheckSuiteStatus.FAILURE),
        CheckSuite(CheckSuiteStatus.PENDING),
        CheckSuite(CheckSuiteStatus.PENDING),
    ]


@pytest.mark.asyncio
async def test_load_config_decodes_content():
    client = make_client()
    text = b'timeout = 120\n[labels]\napprove = ["+approved"]\n'
    encoded = base64.b64encode(text).decode()
    content = encoded[:10] + "\n" + encoded[10:]
    with respx.mock(base_url=API) as mock:
        mock.get(f"{REPO}/contents/{CONFIG_FILE_PATH}").mock(
            return_value=httpx.Response(200, json={"content": content, "encoding": "base64"})
        )
        config = await client.load_config()
    assert config.timeout == timedelta(seconds=120)
    assert config.labels[LabelTrigger.APPROVED] == [LabelModification.add("approved")]
    assert config.labels[LabelTrigger.UNAPPROVED] == [LabelModification.remove("approved")]


@pytest.mark.asyncio
async def test_load_config_missing_content():
    client = make_client()
    with respx.mock(base_url=API) as mock:
        mock.get(f"{REPO}/contents/{CONFIG_FILE_PATH}").mock(
            return_value=httpx.Response(200, json={"type": "file"})
        )
        with pytest.raises(ConfigError, match="Configuration file not found"):
            await client.load_config()


@pytest.mark.asyncio
async def test_load_config_invalid_config():
    client = make_client()
    encoded = base64.b64encode(b'[labels]\ntry = ["foo"]\n').decode()
    with respx.mock(base_url=API) as mock:
        mock.get(f"{REPO}/contents/{CONFIG_FILE_PATH}").mock(
            return_value=httpx.Response(200, json={"content": encoded})
        )
        with pytest.raises(ConfigError, match="must start with `\\+` or `-`"):
            await client.load_config()


@pytest.mark.asyncio
async def test_get_branch_sha():
    client = make_client()
    with respx.mock(base_url=API) as mock:
        mock.get(f"{REPO}/branches/main").mock(
            return_value=httpx.Response(200, json={"name": "main", "commit": {"sha": "abc"}})
        )
        sha = await client.get_branch_sha("main")
    assert sha == CommitSha("abc")


@pytest.mark.asyncio
async def test_get_pull_request():
    client = make_client()
    user = {"id": 7, "login": "someone", "html_url": "https://github.com/someone"}
    payload = {
        "number": 3,
        "title": "Fix",
        "body": None,
        "user": user,
        "head": {"label": "someone:fix", "ref": "fix", "sha": "aaa"},
        "base": {"ref": "main", "sha": "bbb"},
    }
    with respx.mock(base_url=API) as mock:
        mock.get(f"{REPO}/pulls/3").mock(return_value=httpx.Response(200, json=payload))
        pr = await client.get_pull_request(PullRequestNumber(3))
    assert pr.number == PullRequestNumber(3)
    assert pr.head.sha == CommitSha("aaa")
    assert pr.base.name == "main"
    assert pr.message == ""
    assert pr.author.username == "someone"


@pytest.mark.asyncio
async def test_post_comment_and_error():
    client = make_client()
    with respx.mock(base_url=API) as mock:
        route = mock.post(f"{REPO}/issues/5/comments").mock(return_value=httpx.Response(201))
        await client.post_comment(PullRequestNumber(5), "hello")
        assert json.loads(route.calls.last.request.content) == {"body": "hello"}
        route.mock(return_value=httpx.Response(403))
        with pytest.raises(httpx.HTTPStatusError):
            await client.post_comment(PullRequestNumber(5), "hello")


@pytest.mark.asyncio
async def test_cancel_workflows():
    client = make_client()
    with respx.mock(base_url=API) as mock:
        first = mock.post(f"{REPO}/actions/runs/1/cancel").mock(return_value=httpx.Response(202))
        second = mock.post(f"{REPO}/actions/runs/2/cancel").mock(return_value=httpx.Response(202))
        await client.cancel_workflows([1, 2])
        assert (first.call_count, second.call_count) == (1, 1)
        second.mock(return_value=httpx.Response(409))
        with pytest.raises(httpx.HTTPStatusError):
            await client.cancel_workflows([1, 2])


@pytest.mark.asyncio
async def test_add_labels():
    client = make_client()
    with respx.mock(base_url=API) as mock:
        route = mock.post(f"{REPO}/issues/5/labels").mock(return_value=httpx.Response(200))
        assert await client.add_labels(PullRequestNumber(5), []) is None
        assert route.call_count == 0
        assert await client.add_labels(PullRequestNumber(5), ["a", "b"]) is None
    assert route.call_count == 1
    assert json.loads(route.calls.last.request.content) == {"labels": ["a", "b"]}


@pytest.mark.asyncio
async def test_remove_labels_ignores_missing_label():
    client = make_client()
    with respx.mock(base_url=API) as mock:
        present = mock.delete(f"{REPO}/issues/5/labels/a").mock(return_value=httpx.Response(200))
        missing = mock.delete(f"{REPO}/issues/5/labels/b").mock(
            return_value=httpx.Response(404, json={"message": "Label does not exist"})
        )
        result = await client.remove_labels(PullRequestNumber(5), ["a", "b"])
    assert result is None
    assert (present.call_count, missing.call_count) == (1, 1)


@pytest.mark.asyncio
async def test_remove_labels_other_error_raises():
    client = make_client()
    with respx.mock(base_url=API) as mock:
        mock.delete(f"{REPO}/issues/5/labels/a").mock(
            return_value=httpx.Response(500, json={"message": "Server Error"})
        )
        with pytest.raises(httpx.HTTPStatusError):
            await client.remove_labels(PullRequestNumber(5), ["a"])


def test_workflow_url_uses_repository_url():
    client = make_client(repository_html_url="https://github.com/Owner/Repo")
    assert client.get_workflow_url(42) == "https://github.com/Owner/Repo/actions/runs/42"


def test_workflow_url_fallback_and_many():
    client = make_client()
    urls = list(client.get_workflow_urls(iter([1, 2])))
    assert urls == [
        "https://github.com/owner/repo/actions/runs/1",
        "https://github.com/owner/repo/actions/runs/2",
    ]