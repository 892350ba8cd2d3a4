import threading
import time

from packlauncher.netjob import NetJob
from packlauncher.netrequest import NetRequest, NetworkError, Reply, RequestState


def ok(url, body=b"data"):
    return Reply(url=url, status=200, body=body)


def not_found(url):
    return Reply(url=url, status=404, error=NetworkError.CONTENT_NOT_FOUND, error_string="not found")


def make_transport(responses):
    calls = []
    lock = threading.Lock()

    def transport(request):
        with lock:
            calls.append(request.url)
            item = responses[request.url]
            if isinstance(item, list):
                return item.pop(0) if len(item) > 1 else item[0]
            return item

    return transport, calls


A = "https://a.example.com/one"
B = "https://b.example.com/two"
C = "https://c.example.com/three"


def test_all_requests_succeed():
    transport, calls = make_transport({A: ok(A), B: ok(B)})
    job = NetJob("test", transport)
    for url in (A, B):
        assert job.add_net_action(NetRequest(url)) is True
    assert job.run() is RequestState.SUCCEEDED
    assert job.size() == 2
    assert job.failed_actions() == []
    assert sorted(calls) == sorted([A, B])
    assert job.status == "Executing 0 task(s) (2 out of 2 are done)"
    assert job.progress == (2, 2)


def test_add_net_action_sets_transport():
    transport, _ = make_transport({A: ok(A)})
    job = NetJob("test", transport)
    action = NetRequest(A)
    job.add_net_action(action)
    assert action.transport is transport


def test_persistent_failure_is_retried_three_times():
    transport, calls = make_transport({A: ok(A), B: not_found(B)})
    job = NetJob("test", transport)
    job.add_net_action(NetRequest(A))
    job.add_net_action(NetRequest(B))
    assert job.run() is RequestState.FAILED
    assert calls.count(B) == 4
    assert calls.count(A) == 1
    assert job.failed_files() == [B]
    assert job.fail_reason
    assert job.size() == 2


def test_transient_failure_recovers():
    transport, calls = make_transport({A: [not_found(A), ok(A)]})
    job = NetJob("test", transport)
    job.add_net_action(NetRequest(A))
    assert job.run() is RequestState.SUCCEEDED
    assert calls == [A, A]
    assert job.failed_actions() == []


def test_is_online_false_when_host_not_found():
    offline = Reply(A, status=None, error=NetworkError.HOST_NOT_FOUND, error_string="no host")
    transport, _ = make_transport({A: offline})
    job = NetJob("test", transport)
    job.add_net_action(NetRequest(A))
    assert job.run() is RequestState.FAILED
    assert job.is_online() is False


def test_is_online_true_on_http_error():
    transport, _ = make_transport({A: not_found(A)})
    job = NetJob("test", transport)
    job.add_net_action(NetRequest(A))
    job.run()
    assert job.is_online() is True


def test_abort_before_run_fails_queue():
    job = NetJob("test")
    job.add_net_action(NetRequest(A))
    job.add_net_action(NetRequest(B))
    assert job.can_abort() is True
    assert job.abort() is True
    assert sorted(job.failed_files()) == sorted([A, B])
    assert job.size() == 0
    assert job.state is RequestState.ABORTED_BY_USER


def test_abort_during_run():
    calls = []
    holder = {}

    def transport(request):
        calls.append(request.url)
        holder["job"].abort()
        return ok(request.url)

    job = NetJob("test", transport, max_concurrent=1)
    holder["job"] = job
    for url in (A, B, C):
        job.add_net_action(NetRequest(url))
    assert job.run() is RequestState.ABORTED_BY_USER
    assert len(calls) == 1
    assert sorted(job.failed_files()) == sorted([A, B, C])


def test_manual_retry_prompt():
    transport, calls = make_transport({A: [not_found(A)] * 4 + [ok(A)]})
    prompts = []

    def prompt(files):
        prompts.append(files)
        return True

    job = NetJob("test", transport, retry_prompt=prompt)
    job.add_net_action(NetRequest(A))
    assert job.run() is RequestState.SUCCEEDED
    assert prompts == [[A]]
    assert calls.count(A) == 5


def test_manual_retry_declined():
    transport, _ = make_transport({A: not_found(A)})
    prompts = []

    def prompt(files):
        prompts.append(files)
        return False

    job = NetJob("test", transport, retry_prompt=prompt)
    job.add_net_action(NetRequest(A))
    assert job.run() is RequestState.FAILED
    assert prompts == [[A]]


def test_max_concurrent_is_respected():
    active = 0
    peak = 0
    lock = threading.Lock()

    def transport(request):
        nonlocal active, peak
        with lock:
            active += 1
            peak = max(peak, active)
        time.sleep(0.02)
        with lock:
            active -= 1
        return ok(request.url)

    job = NetJob("test", transport, max_concurrent=2)
    urls = [f"https://files.example.com/{n}" for n in range(6)]
    for url in urls:
        job.add_net_action(NetRequest(url))
    assert job.run() is RequestState.SUCCEEDED
    assert 1 <= peak <= 2
    assert job.size() == len(urls)


def test_progress_callback_reaches_total():
    seen = []
    transport, _ = make_transport({A: ok(A), B: ok(B)})
    job = NetJob("test", transport, on_progress=lambda done, total: seen.append((done, total)))
    job.add_net_action(NetRequest(A))
    job.add_net_action(NetRequest(B))
    job.run()
    assert seen[-1] == (2, 2)
    assert all(done <= total for done, total in seen)