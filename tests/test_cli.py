import json

import pytest

import config
import main


@pytest.fixture
def workspace(tmp_path):
    keys = str(tmp_path / "keys.json")
    bundle = str(tmp_path / "bundle.json")

    def run(*args):
        return main.main(["--keys", keys, "--bundle", bundle, *args])

    policies = tmp_path / "policies.json"
    policies.write_text(json.dumps([{
        "tenant_id": "t1",
        "policy_id": "p1",
        "path": "/a",
        "required_algs": config.REQUIRED_ALGS,
        "max_age_ms": 60_000,
    }]))
    (tmp_path / "message.txt").write_bytes(b"quarterly report")

    assert run("keygen", "--party", "alice", "--party", "bob", "--party", "authority") == 0
    assert run("sign-policies", "--signer", "authority", "--policies", str(policies)) == 0
    return tmp_path, run


def seal(tmp_path, run, path="/a"):
    return run(
        "seal", "--sender", "alice", "--recipient", "bob",
        "--tenant", "t1", "--policy", "p1", "--path", path,
        "--in", str(tmp_path / "message.txt"), "--out", str(tmp_path / "message.env"),
    )


def verify(tmp_path, run, sender="alice"):
    return run(
        "verify", "--sender", sender, "--recipient", "bob", "--authority", "authority",
        "--in", str(tmp_path / "message.env"), "--out", str(tmp_path / "opened.txt"),
    )


def test_seal_then_verify(workspace, capsys):
    tmp_path, run = workspace
    assert seal(tmp_path, run) == 0
    assert verify(tmp_path, run) == 0
    assert capsys.readouterr().out.strip().endswith("ACCEPT")
    assert (tmp_path / "opened.txt").read_bytes() == b"quarterly report"


def test_verify_rejects_wrong_sender(workspace, capsys):
    tmp_path, run = workspace
    seal(tmp_path, run)
    assert verify(tmp_path, run, sender="bob") == 1
    assert capsys.readouterr().out.strip().endswith("REJECT")
    assert not (tmp_path / "opened.txt").exists()


def test_verify_rejects_path_outside_policy(workspace):
    tmp_path, run = workspace
    seal(tmp_path, run, path="/b")
    assert verify(tmp_path, run) == 1


def test_unknown_party_is_an_error(workspace):
    tmp_path, run = workspace
    assert run(
        "seal", "--sender", "mallory", "--recipient", "bob",
        "--tenant", "t1", "--policy", "p1", "--path", "/a",
        "--in", str(tmp_path / "message.txt"), "--out", str(tmp_path / "x.env"),
    ) == 2
