"""The top-level configuration object and its built-in defaults."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .config_structs import (
    AuthConfig,
    CapabilitiesConfig,
    ConfigConfig,
    LogsConfig,
    PcapDumpConfig,
    Role,
    SamlConfig,
    ScriptingConfig,
    TapConfig,
)
from .fields import Kind, yaml_field

KUBE_CONFIG_PATH_CONFIG_NAME = "kube-configPath"


@dataclass
class KubeConfig:
    config_path_str: str = yaml_field("configPath", Kind.STRING)
    context: str = yaml_field("context", Kind.STRING)


@dataclass
class ManifestsConfig:
    dump: bool = yaml_field("dump", Kind.BOOL)


@dataclass
class ConfigStruct:
    tap: TapConfig = yaml_field("tap", Kind.STRUCT, factory=TapConfig)
    logs: LogsConfig = yaml_field("logs", Kind.STRUCT, factory=LogsConfig)
    config: ConfigConfig = yaml_field("config", Kind.STRUCT, factory=ConfigConfig, omitempty=True)
    pcapdump: PcapDumpConfig = yaml_field("pcapdump", Kind.STRUCT, factory=PcapDumpConfig)
    kube: KubeConfig = yaml_field("kube", Kind.STRUCT, factory=KubeConfig)
    dump_logs: bool = yaml_field("dumpLogs", Kind.BOOL, default=False)
    headless_mode: bool = yaml_field("headless", Kind.BOOL, default=False)
    license: str = yaml_field("license", Kind.STRING, default="")
    cloud_license_enabled: bool = yaml_field("cloudLicenseEnabled", Kind.BOOL, default=True)
    support_chat_enabled: bool = yaml_field("supportChatEnabled", Kind.BOOL, default=True)
    internet_connectivity: bool = yaml_field("internetConnectivity", Kind.BOOL, default=True)
    dissectors_updating_enabled: bool = yaml_field(
        "dissectorsUpdatingEnabled", Kind.BOOL, default=True
    )
    scripting: ScriptingConfig = yaml_field("scripting", Kind.STRUCT, factory=ScriptingConfig)
    manifests: ManifestsConfig = yaml_field(
        "manifests", Kind.STRUCT, factory=ManifestsConfig, omitempty=True
    )
    timezone: str = yaml_field("timezone", Kind.STRING)
    log_level: str = yaml_field("logLevel", Kind.STRING, default="warning")

    def image_pull_policy(self) -> str:
        """The pull policy for the Docker images."""
        return self.tap.docker.image_pull_policy

    def image_pull_secrets(self) -> list[dict[str, Any]]:
        """The pull secrets as local object references."""
        return [{"name": name} for name in self.tap.docker.image_pull_secrets]

    def kube_config_path(self) -> str:
        """The kubeconfig to use: configured path, then KUBECONFIG, then the home default."""
        if self.kube.config_path_str:
            return self.kube.config_path_str
        env_path = os.environ.get("KUBECONFIG", "")
        if env_path:
            return env_path
        return os.path.join(str(Path.home()), ".kube", "config")


def create_default_config() -> ConfigStruct:
    """A configuration holding the built-in defaults."""
    return ConfigStruct(
        tap=TapConfig(
            node_selector_terms=[
                {
                    "matchExpressions": [
                        {
                            "key": "kubernetes.io/os",
                            "operator": "In",
                            "values": ["linux"],
                        }
                    ]
                }
            ],
            capabilities=CapabilitiesConfig(
                # NET_RAW and NET_ADMIN are required to listen to network traffic.
                network_capture=["NET_RAW", "NET_ADMIN"],
                service_mesh_capture=["SYS_ADMIN", "SYS_PTRACE", "DAC_OVERRIDE"],
                ebpf_capture=["SYS_ADMIN", "SYS_PTRACE", "SYS_RESOURCE", "IPC_LOCK"],
            ),
            auth=AuthConfig(
                saml=SamlConfig(
                    role_attribute="role",
                    roles={
                        "admin": Role(
                            filter="",
                            can_download_pcap=True,
                            can_use_scripting=True,
                            can_update_targeted_pods=True,
                            can_stop_traffic_capturing=True,
                            show_admin_console_link=True,
                        )
                    },
                )
            ),
            enabled_dissectors=[
                "amqp",
                "dns",
                "http",
                "icmp",
                "kafka",
                "redis",
                "sctp",
                "syscall",
                "ws",
                "ldap",
            ],
        )
    )