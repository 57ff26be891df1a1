import os

import pytest

from kubeshark.config_structs import (
    ConfigConfig,
    ConfigValidationError,
    LogsConfig,
    PcapDumpConfig,
    ResourceLimitsWorker,
    ResourceRequirementsWorker,
    ScriptingConfig,
    TapConfig,
)
from kubeshark.fields import (
    ValueParseError,
    set_zero_for_readonly_fields,
    to_dict,
    update_from_dict,
)


def test_tap_defaults_from_source():
    tap = TapConfig()
    assert tap.proxy.front.port == 8899
    assert tap.proxy.hub.srv_port == 8898
    assert tap.proxy.worker.srv_port == 48999
    assert tap.proxy.host == "127.0.0.1"
    assert tap.pod_regex_str == ".*"
    assert tap.storage_limit == "5000Mi"
    assert tap.default_filter == "!dns and !error"
    assert tap.docker.registry == "docker.io/kubeshark"
    assert tap.ingress.host == "ks.svc.cluster.local"
    assert tap.release.namespace == "default"
    assert tap.misc.tcp_stream_channel_timeout_ms == 10000
    assert tap.metrics.port == 49100


def test_mutable_defaults_are_independent():
    first = TapConfig()
    second = TapConfig()
    first.namespaces.append("ns")
    first.labels["a"] = "b"
    assert second.namespaces == []
    assert second.labels == {}


def test_worker_requirements_use_hub_limits():
    assert ResourceRequirementsWorker().limits.memory == "5Gi"
    assert ResourceLimitsWorker().memory == "3Gi"


def test_pcap_dump_defaults():
    pcap = PcapDumpConfig()
    assert pcap.enabled is True
    assert pcap.max_size == "500MB"
    assert pcap.src_dir == "pcapdump"


def test_pod_regex_compiles():
    tap = TapConfig(pod_regex_str="^front-")
    pattern = tap.pod_regex()
    assert pattern.match("front-1")
    assert pattern.match("hub-1") is None


def test_pod_regex_invalid_returns_none():
    assert TapConfig(pod_regex_str="(").pod_regex() is None


def test_validate_rejects_bad_regex():
    with pytest.raises(ConfigValidationError, match="is not a valid regex"):
        TapConfig(pod_regex_str="(").validate()


def test_logs_file_path_explicit():
    assert LogsConfig(file_str="/tmp/out.zip").file_path() == "/tmp/out.zip"


def test_logs_file_path_defaults_to_cwd(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert LogsConfig().file_path() == os.path.join(os.getcwd(), "kubeshark_logs.zip")


def test_logs_validate_fails_without_cwd(monkeypatch):
    def broken():
        raise OSError("gone")

    monkeypatch.setattr(os, "getcwd", broken)
    with pytest.raises(ConfigValidationError, match="failed to get PWD"):
        LogsConfig().validate()


def test_logs_validate_skips_cwd_when_file_given(monkeypatch):
    def broken():
        raise OSError("gone")

    monkeypatch.setattr(os, "getcwd", broken)
    logs = LogsConfig(file_str="x.zip")
    logs.validate()
    assert logs.file_path() == "x.zip"


def test_scripting_defaults():
    scripting = ScriptingConfig()
    assert scripting.env == {}
    assert scripting.watch_scripts is True
    assert scripting.console is True
    assert scripting.sources == []


def test_tap_dict_round_trip():
    tap = TapConfig(pod_regex_str="abc", namespaces=["x", "y"])
    tap.proxy.front.port = 9000
    data = to_dict(tap)
    assert data["regex"] == "abc"
    assert data["proxy"]["front"]["port"] == 9000
    restored = TapConfig()
    update_from_dict(restored, data)
    assert restored == tap


def test_update_rejects_out_of_range_port():
    tap = TapConfig()
    with pytest.raises(ValueParseError):
        update_from_dict(tap, {"proxy": {"front": {"port": 70000}}})


def test_config_config_omitempty_and_readonly():
    assert "regenerate" not in to_dict(ConfigConfig())
    cfg = ConfigConfig(regenerate=True)
    assert to_dict(cfg) == {"regenerate": True}
    set_zero_for_readonly_fields(cfg)
    assert cfg.regenerate is False