import pytest

from chefsolo.errors import (
    ConfigurationError,
    LocalCommandError,
    MalformedInputError,
    RemoteCommandError,
)
from chefsolo.observers.dispatcher import EventBus
from chefsolo.provisioner.orchestrator import ProvisionState, Provisioner

CLIENT_RUN = (
    "cd /opt/chef/0/output && /opt/chef/embedded/bin/ruby --disable-gems /usr/bin/chef-client"
    ' -z -c /opt/chef/0/client.rb -j "/opt/chef/0/output/dna/toto.json" -E "_default"'
)


def sudo(cmd):
    return f"sudo bash -c '{cmd}'"


def _provisioner(request, connection, capture, local_runner, bus=None):
    return Provisioner(
        request,
        output=capture,
        connection=connection,
        local_runner=local_runner,
        bus=bus,
        connect_initial_delay=0.01,
    )


def test_linux_run_with_sudo(make_request, fake_connection, capture, fake_local_runner, tmp_path):
    p = _provisioner(make_request(use_sudo=True), fake_connection, capture, fake_local_runner)

    p.apply()

    assert p.state is ProvisionState.DONE
    assert len(fake_local_runner.commands) == 1
    assert (tmp_path / "output" / "dna" / "toto.json").read_text() == '{"id":"toto"}'

    log = fake_connection.log
    assert log[0] == ("connect",)
    assert log[1:3] == [
        ("exec", sudo("mkdir -p /opt/chef/0")),
        ("exec", sudo("chmod -R 777 /opt/chef/0")),
    ]
    assert log[3][:2] == ("upload", "/opt/chef/0/client.rb")
    assert "local_mode true" in log[3][2]
    assert log[4] == ("upload_dir", "/opt/chef/0", tmp_path / "output")
    assert [e[1] for e in log[5:-1]] == [
        sudo("chmod -R 755 /opt/chef/0"),
        sudo("find /opt/chef/0 -maxdepth 1 -type f -exec /bin/chmod -R 600 {} +"),
        sudo("chown -R root.root /opt/chef/0"),
        sudo("curl -LO https://omnitruck.chef.io/install.sh"),
        sudo("bash ./install.sh -c stable"),
        sudo("rm -f install.sh"),
        sudo(CLIENT_RUN),
    ]
    assert log[-1] == ("disconnect",)


def test_service_install_with_sudo(make_request, fake_connection, capture, fake_local_runner):
    req = make_request(use_sudo=True, install_as_service=True, skip_install=True)
    p = _provisioner(req, fake_connection, capture, fake_local_runner)

    p.apply()

    uploads = [e[1] for e in fake_connection.log if e[0] == "upload"]
    assert uploads == ["/opt/chef/0/client.rb", "/tmp/chef-run.service"]
    assert fake_connection.commands[-5:] == [
        sudo("find /tmp/chef-run.service -maxdepth 1 -type f -exec /bin/chmod -R 755 {} +"),
        sudo("mv /tmp/chef-run.service /etc/systemd/system/chef-run.service"),
        sudo("systemctl daemon-reload"),
        sudo("systemctl enable chef-run.service"),
        sudo(CLIENT_RUN),
    ]


def test_service_without_sudo_fails_before_any_remote_work(
    make_request, fake_connection, capture, fake_local_runner
):
    p = _provisioner(make_request(install_as_service=True), fake_connection, capture, fake_local_runner)

    with pytest.raises(ConfigurationError, match="use_sudo") as ei:
        p.apply()

    assert ei.value.stage == "Configured"
    assert p.state is ProvisionState.NEW
    assert fake_connection.log == []
    assert fake_local_runner.commands == []


def test_malformed_node_fails_before_connecting(make_request, fake_connection, capture, fake_local_runner):
    p = _provisioner(make_request(nodes=["{not json"]), fake_connection, capture, fake_local_runner)

    with pytest.raises(MalformedInputError):
        p.apply()

    assert fake_connection.connects == 0
    assert fake_local_runner.commands == []


def test_remote_failure_is_tagged_with_stage(make_request, fake_connection_cls, capture, fake_local_runner):
    conn = fake_connection_cls(responses={"mkdir -p /opt/chef/0": ("No space left on device\n", 1)})
    p = _provisioner(make_request(), conn, capture, fake_local_runner)

    with pytest.raises(RemoteCommandError) as ei:
        p.apply()

    assert ei.value.stage == "MachinePrepared"
    assert str(ei.value).startswith("[MachinePrepared] ")
    assert ei.value.exit_status == 1
    assert p.state is ProvisionState.LOCAL_ARTIFACTS_PREPARED
    assert conn.commands == ["mkdir -p /opt/chef/0"]
    assert conn.disconnected


def test_bundle_failure_never_connects(make_request, fake_connection, capture, fake_local_runner_cls):
    p = _provisioner(make_request(), fake_connection, capture, fake_local_runner_cls(fail_on="berks"))

    with pytest.raises(LocalCommandError) as ei:
        p.apply()

    assert ei.value.stage == "LocalArtifactsPrepared"
    assert fake_connection.log == []
    assert p.ctx.ended


def test_skip_install_and_no_sudo(make_request, fake_connection, capture, fake_local_runner):
    p = _provisioner(make_request(skip_install=True), fake_connection, capture, fake_local_runner)

    p.apply()

    assert fake_connection.commands == ["mkdir -p /opt/chef/0", CLIENT_RUN]


def test_policyfile_named_run_list(make_request, fake_connection, capture, fake_local_runner):
    req = make_request(skip_install=True, use_policyfile=True, named_run_list="base")
    p = _provisioner(req, fake_connection, capture, fake_local_runner)

    p.apply()

    assert len(fake_local_runner.commands) == 2
    assert fake_connection.commands[-1].endswith('-j "/opt/chef/0/output/dna/toto.json" -n "base"')


def test_windows_run(make_request, fake_connection, capture, fake_local_runner, tmp_path):
    from chefsolo.config.models import ConnectionInfo

    req = make_request(
        os_type="windows",
        use_sudo=True,
        connection=ConnectionInfo(type="winrm", host="win-1", timeout=1.0),
    )
    p = _provisioner(req, fake_connection, capture, fake_local_runner)

    p.apply()

    assert not p.use_sudo
    uploads = [e[1] for e in fake_connection.log if e[0] == "upload"]
    assert uploads == ["C:/chef/client.rb", "C:/Windows/Temp/ChefClient.ps1"]
    assert ("upload_dir", "C:/chef", tmp_path / "output") in fake_connection.log
    assert fake_connection.commands == [
        'cmd /c if not exist "C:/chef" mkdir "C:/chef"',
        "powershell -NoProfile -ExecutionPolicy Bypass -File C:/Windows/Temp/ChefClient.ps1",
        'cmd /c del /f "C:/Windows/Temp/ChefClient.ps1"',
        'cd C:/chef/output && cmd /c chef-client -z -c C:/chef/client.rb'
        ' -j "C:/chef/output/dna/toto.json" -E "_default"',
    ]


def test_lifecycle_events(make_request, fake_connection, capture, fake_local_runner):
    bus = EventBus(observers=[capture])
    p = _provisioner(make_request(skip_install=True), fake_connection, capture, fake_local_runner, bus=bus)

    p.apply()

    names = [
        (e.__class__.__name__, getattr(e, "stage", None))
        for e in capture.events
        if e.__class__.__name__.startswith("Stage")
    ]
    assert names == [
        ("StageStarted", "Configured"),
        ("StageSucceeded", "Configured"),
        ("StageStarted", "LocalArtifactsPrepared"),
        ("StageSucceeded", "LocalArtifactsPrepared"),
        ("StageStarted", "MachinePrepared"),
        ("StageSucceeded", "MachinePrepared"),
        ("StageStarted", "ClientRan"),
        ("StageSucceeded", "ClientRan"),
    ]
    assert "BundleBuilt" in [e.__class__.__name__ for e in capture.events]
    summary = capture.events[-1]
    assert summary.__class__.__name__ == "RunSummary"
    assert summary.status == "DONE"


def test_failed_run_summary(make_request, fake_connection, capture, fake_local_runner):
    bus = EventBus(observers=[capture])
    p = _provisioner(make_request(nodes=["[]"]), fake_connection, capture, fake_local_runner, bus=bus)

    with pytest.raises(MalformedInputError):
        p.apply()

    assert capture.events[-2].__class__.__name__ == "StageFailed"
    assert capture.events[-1].status == "FAILED"


def test_run_requires_configure(make_request, fake_connection, capture, fake_local_runner):
    p = _provisioner(make_request(), fake_connection, capture, fake_local_runner)

    with pytest.raises(RuntimeError, match="configured"):
        p.run()


@pytest.mark.parametrize(
    "info, match",
    [
        ({"type": "winrm", "host": "win-1"}, "winrm"),
        ({"type": "ssh"}, "connection.host"),
    ],
)
def test_unusable_transport_fails_at_configure(make_request, capture, fake_local_runner, info, match):
    from chefsolo.config.models import ConnectionInfo

    p = Provisioner(
        make_request(connection=ConnectionInfo(**info)),
        output=capture,
        local_runner=fake_local_runner,
    )

    with pytest.raises(ConfigurationError, match=match) as ei:
        p.apply()

    assert ei.value.stage == "Configured"
    assert p.state is ProvisionState.NEW
    assert fake_local_runner.commands == []
