"""Configuration sections: tap, logs, scripting, pcap dump and config options."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from typing import Any

from .fields import Kind, yaml_field

PROGRAM = "kubeshark"

REGENERATE_CONFIG_NAME = "regenerate"

FILE_LOGS_NAME = "file"
GREP_LOGS_NAME = "grep"

DOCKER_REGISTRY_LABEL = "docker-registry"
DOCKER_TAG_LABEL = "docker-tag"
DOCKER_IMAGE_PULL_POLICY = "docker-imagePullPolicy"
DOCKER_IMAGE_PULL_SECRETS = "docker-imagePullSecrets"
PROXY_FRONT_PORT_LABEL = "proxy-front-port"
PROXY_HUB_PORT_LABEL = "proxy-hub-port"
PROXY_HOST_LABEL = "proxy-host"
NAMESPACES_LABEL = "namespaces"
EXCLUDED_NAMESPACES_LABEL = "excludedNamespaces"
RELEASE_NAMESPACE_LABEL = "release-namespace"
PERSISTENT_STORAGE_LABEL = "persistentStorage"
PERSISTENT_STORAGE_STATIC_LABEL = "persistentStorageStatic"
EFS_FILE_SYTEM_ID_AND_PATH_LABEL = "efsFileSytemIdAndPath"
STORAGE_LIMIT_LABEL = "storageLimit"
STORAGE_CLASS_LABEL = "storageClass"
DRY_RUN_LABEL = "dryRun"
PCAP_LABEL = "pcap"
SERVICE_MESH_LABEL = "serviceMesh"
TLS_LABEL = "tls"
IGNORE_TAINTED_LABEL = "ignoreTainted"
INGRESS_ENABLED_LABEL = "ingress-enabled"
TELEMETRY_ENABLED_LABEL = "telemetry-enabled"
RESOURCE_GUARD_ENABLED_LABEL = "resource-guard-enabled"
PPROF_PORT_LABEL = "pprof-port"
PPROF_VIEW_LABEL = "pprof-view"
DEBUG_LABEL = "debug"
CONTAINER_PORT = 8080
CONTAINER_PORT_STR = "8080"
PCAP_DEST = "dest"
PCAP_MAX_SIZE = "maxSize"
PCAP_MAX_TIME = "maxTime"
PCAP_TIME_INTERVAL = "timeInterval"
PCAP_KUBECONFIG = "kubeconfig"
PCAP_DUMP_ENABLED = "enabled"
PCAP_TIME = "time"


class ConfigValidationError(ValueError):
    """A configuration section holds a value that cannot be used."""


@dataclass
class ResourceLimitsHub:
    cpu: str = yaml_field("cpu", Kind.STRING, default="0")
    memory: str = yaml_field("memory", Kind.STRING, default="5Gi")


@dataclass
class ResourceLimitsWorker:
    cpu: str = yaml_field("cpu", Kind.STRING, default="0")
    memory: str = yaml_field("memory", Kind.STRING, default="3Gi")


@dataclass
class ResourceRequests:
    cpu: str = yaml_field("cpu", Kind.STRING, default="50m")
    memory: str = yaml_field("memory", Kind.STRING, default="50Mi")


@dataclass
class ResourceRequirementsHub:
    limits: ResourceLimitsHub = yaml_field("limits", Kind.STRUCT, factory=ResourceLimitsHub)
    requests: ResourceRequests = yaml_field("requests", Kind.STRUCT, factory=ResourceRequests)


@dataclass
class ResourceRequirementsWorker:
    # Worker requirements share the hub limits, as the defaults always have.
    limits: ResourceLimitsHub = yaml_field("limits", Kind.STRUCT, factory=ResourceLimitsHub)
    requests: ResourceRequests = yaml_field("requests", Kind.STRUCT, factory=ResourceRequests)


@dataclass
class WorkerConfig:
    srv_port: int = yaml_field("srvPort", Kind.UINT16, default=48999)


@dataclass
class HubConfig:
    srv_port: int = yaml_field("srvPort", Kind.UINT16, default=8898)


@dataclass
class FrontConfig:
    port: int = yaml_field("port", Kind.UINT16, default=8899)


@dataclass
class ProxyConfig:
    worker: WorkerConfig = yaml_field("worker", Kind.STRUCT, factory=WorkerConfig)
    hub: HubConfig = yaml_field("hub", Kind.STRUCT, factory=HubConfig)
    front: FrontConfig = yaml_field("front", Kind.STRUCT, factory=FrontConfig)
    host: str = yaml_field("host", Kind.STRING, default="127.0.0.1")


@dataclass
class OverrideImageConfig:
    worker: str = yaml_field("worker", Kind.STRING)
    hub: str = yaml_field("hub", Kind.STRING)
    front: str = yaml_field("front", Kind.STRING)


@dataclass
class OverrideTagConfig:
    worker: str = yaml_field("worker", Kind.STRING)
    hub: str = yaml_field("hub", Kind.STRING)
    front: str = yaml_field("front", Kind.STRING)


@dataclass
class DockerConfig:
    registry: str = yaml_field("registry", Kind.STRING, default="docker.io/kubeshark")
    tag: str = yaml_field("tag", Kind.STRING, default="")
    tag_locked: bool = yaml_field("tagLocked", Kind.BOOL, default=True)
    image_pull_policy: str = yaml_field("imagePullPolicy", Kind.STRING, default="Always")
    image_pull_secrets: list[str] = yaml_field("imagePullSecrets", Kind.STRING_LIST)
    override_image: OverrideImageConfig = yaml_field(
        "overrideImage", Kind.STRUCT, factory=OverrideImageConfig
    )
    override_tag: OverrideTagConfig = yaml_field(
        "overrideTag", Kind.STRUCT, factory=OverrideTagConfig
    )


@dataclass
class ResourcesConfig:
    hub: ResourceRequirementsHub = yaml_field("hub", Kind.STRUCT, factory=ResourceRequirementsHub)
    sniffer: ResourceRequirementsWorker = yaml_field(
        "sniffer", Kind.STRUCT, factory=ResourceRequirementsWorker
    )
    tracer: ResourceRequirementsWorker = yaml_field(
        "tracer", Kind.STRUCT, factory=ResourceRequirementsWorker
    )


@dataclass
class Role:
    filter: str = yaml_field("filter", Kind.STRING, default="")
    can_download_pcap: bool = yaml_field("canDownloadPCAP", Kind.BOOL, default=False)
    can_use_scripting: bool = yaml_field("canUseScripting", Kind.BOOL, default=False)
    can_update_targeted_pods: bool = yaml_field("canUpdateTargetedPods", Kind.BOOL, default=False)
    can_stop_traffic_capturing: bool = yaml_field(
        "canStopTrafficCapturing", Kind.BOOL, default=False
    )
    show_admin_console_link: bool = yaml_field("showAdminConsoleLink", Kind.BOOL, default=False)


@dataclass
class SamlConfig:
    idp_metadata_url: str = yaml_field("idpMetadataUrl", Kind.STRING)
    x509crt: str = yaml_field("x509crt", Kind.STRING)
    x509key: str = yaml_field("x509key", Kind.STRING)
    role_attribute: str = yaml_field("roleAttribute", Kind.STRING)
    roles: dict[str, Role] = yaml_field("roles", Kind.MAP)


@dataclass
class AuthConfig:
    enabled: bool = yaml_field("enabled", Kind.BOOL, default=False)
    type: str = yaml_field("type", Kind.STRING, default="saml")
    saml: SamlConfig = yaml_field("saml", Kind.STRUCT, factory=SamlConfig)


@dataclass
class IngressConfig:
    enabled: bool = yaml_field("enabled", Kind.BOOL, default=False)
    class_name: str = yaml_field("className", Kind.STRING, default="")
    host: str = yaml_field("host", Kind.STRING, default="ks.svc.cluster.local")
    tls: list[Any] = yaml_field("tls", Kind.LIST, default=[])
    annotations: dict[str, str] = yaml_field("annotations", Kind.MAP, default={})


@dataclass
class ReleaseConfig:
    repo: str = yaml_field("repo", Kind.STRING, default="")
    name: str = yaml_field("name", Kind.STRING, default="kubeshark")
    namespace: str = yaml_field("namespace", Kind.STRING, default="default")


@dataclass
class TelemetryConfig:
    enabled: bool = yaml_field("enabled", Kind.BOOL, default=True)


@dataclass
class ResourceGuardConfig:
    enabled: bool = yaml_field("enabled", Kind.BOOL, default=False)


@dataclass
class SentryConfig:
    enabled: bool = yaml_field("enabled", Kind.BOOL, default=False)
    environment: str = yaml_field("environment", Kind.STRING, default="production")


@dataclass
class CapabilitiesConfig:
    network_capture: list[str] = yaml_field("networkCapture", Kind.STRING_LIST, default=[])
    service_mesh_capture: list[str] = yaml_field(
        "serviceMeshCapture", Kind.STRING_LIST, default=[]
    )
    ebpf_capture: list[str] = yaml_field("ebpfCapture", Kind.STRING_LIST, default=[])


@dataclass
class MetricsConfig:
    port: int = yaml_field("port", Kind.UINT16, default=49100)


@dataclass
class PprofConfig:
    enabled: bool = yaml_field("enabled", Kind.BOOL, default=False)
    port: int = yaml_field("port", Kind.UINT16, default=8000)
    view: str = yaml_field("view", Kind.STRING, default="flamegraph")


@dataclass
class MiscConfig:
    json_ttl: str = yaml_field("jsonTTL", Kind.STRING, default="5m")
    pcap_ttl: str = yaml_field("pcapTTL", Kind.STRING, default="10s")
    pcap_error_ttl: str = yaml_field("pcapErrorTTL", Kind.STRING, default="60s")
    traffic_sample_rate: int = yaml_field("trafficSampleRate", Kind.INT, default=100)
    tcp_stream_channel_timeout_ms: int = yaml_field(
        "tcpStreamChannelTimeoutMs", Kind.INT, default=10000
    )
    tcp_stream_channel_timeout_show: bool = yaml_field(
        "tcpStreamChannelTimeoutShow", Kind.BOOL, default=False
    )
    resolution_strategy: str = yaml_field("resolutionStrategy", Kind.STRING, default="auto")
    duplicate_timeframe: str = yaml_field("duplicateTimeframe", Kind.STRING, default="200ms")
    detect_duplicates: bool = yaml_field("detectDuplicates", Kind.BOOL, default=False)
    stale_timeout_seconds: int = yaml_field("staleTimeoutSeconds", Kind.INT, default=30)


@dataclass
class PcapDumpConfig:
    enabled: bool = yaml_field("enabled", Kind.BOOL, default=True)
    time_interval: str = yaml_field("timeInterval", Kind.STRING, default="1m")
    max_time: str = yaml_field("maxTime", Kind.STRING, default="1h")
    max_size: str = yaml_field("maxSize", Kind.STRING, default="500MB")
    src_dir: str = yaml_field("pcapSrcDir", Kind.STRING, default="pcapdump")
    time: str = yaml_field("time", Kind.STRING, default="time")


@dataclass
class TapConfig:
    docker: DockerConfig = yaml_field("docker", Kind.STRUCT, factory=DockerConfig)
    proxy: ProxyConfig = yaml_field("proxy", Kind.STRUCT, factory=ProxyConfig)
    pod_regex_str: str = yaml_field("regex", Kind.STRING, default=".*")
    namespaces: list[str] = yaml_field("namespaces", Kind.STRING_LIST, default=[])
    excluded_namespaces: list[str] = yaml_field(
        "excludedNamespaces", Kind.STRING_LIST, default=[]
    )
    bpf_override: str = yaml_field("bpfOverride", Kind.STRING, default="")
    stopped: bool = yaml_field("stopped", Kind.BOOL, default=False)
    release: ReleaseConfig = yaml_field("release", Kind.STRUCT, factory=ReleaseConfig)
    persistent_storage: bool = yaml_field("persistentStorage", Kind.BOOL, default=False)
    persistent_storage_static: bool = yaml_field(
        "persistentStorageStatic", Kind.BOOL, default=False
    )
    efs_file_sytem_id_and_path: str = yaml_field(
        "efsFileSytemIdAndPath", Kind.STRING, default=""
    )
    storage_limit: str = yaml_field("storageLimit", Kind.STRING, default="5000Mi")
    storage_class: str = yaml_field("storageClass", Kind.STRING, default="standard")
    dry_run: bool = yaml_field("dryRun", Kind.BOOL, default=False)
    resources: ResourcesConfig = yaml_field("resources", Kind.STRUCT, factory=ResourcesConfig)
    service_mesh: bool = yaml_field("serviceMesh", Kind.BOOL, default=True)
    tls: bool = yaml_field("tls", Kind.BOOL, default=True)
    disable_tls_log: bool = yaml_field("disableTlsLog", Kind.BOOL, default=True)
    packet_capture: str = yaml_field("packetCapture", Kind.STRING, default="best")
    ignore_tainted: bool = yaml_field("ignoreTainted", Kind.BOOL, default=False)
    labels: dict[str, str] = yaml_field("labels", Kind.MAP, default={})
    annotations: dict[str, str] = yaml_field("annotations", Kind.MAP, default={})
    node_selector_terms: list[Any] = yaml_field("nodeSelectorTerms", Kind.LIST, default=[])
    auth: AuthConfig = yaml_field("auth", Kind.STRUCT, factory=AuthConfig)
    ingress: IngressConfig = yaml_field("ingress", Kind.STRUCT, factory=IngressConfig)
    ipv6: bool = yaml_field("ipv6", Kind.BOOL, default=True)
    debug: bool = yaml_field("debug", Kind.BOOL, default=False)
    telemetry: TelemetryConfig = yaml_field("telemetry", Kind.STRUCT, factory=TelemetryConfig)
    resource_guard: ResourceGuardConfig = yaml_field(
        "resourceGuard", Kind.STRUCT, factory=ResourceGuardConfig
    )
    sentry: SentryConfig = yaml_field("sentry", Kind.STRUCT, factory=SentryConfig)
    default_filter: str = yaml_field("defaultFilter", Kind.STRING, default="!dns and !error")
    scripting_disabled: bool = yaml_field("scriptingDisabled", Kind.BOOL, default=False)
    targeted_pods_update_disabled: bool = yaml_field(
        "targetedPodsUpdateDisabled", Kind.BOOL, default=False
    )
    preset_filters_changing_enabled: bool = yaml_field(
        "presetFiltersChangingEnabled", Kind.BOOL, default=True
    )
    recording_disabled: bool = yaml_field("recordingDisabled", Kind.BOOL, default=False)
    stop_traffic_capturing_disabled: bool = yaml_field(
        "stopTrafficCapturingDisabled", Kind.BOOL, default=False
    )
    capabilities: CapabilitiesConfig = yaml_field(
        "capabilities", Kind.STRUCT, factory=CapabilitiesConfig
    )
    global_filter: str = yaml_field("globalFilter", Kind.STRING, default="")
    enabled_dissectors: list[str] = yaml_field("enabledDissectors", Kind.STRING_LIST)
    metrics: MetricsConfig = yaml_field("metrics", Kind.STRUCT, factory=MetricsConfig)
    pprof: PprofConfig = yaml_field("pprof", Kind.STRUCT, factory=PprofConfig)
    misc: MiscConfig = yaml_field("misc", Kind.STRUCT, factory=MiscConfig)

    def pod_regex(self) -> re.Pattern[str] | None:
        """The compiled pod regex, or None if it does not compile."""
        try:
            return re.compile(self.pod_regex_str)
        except re.error:
            return None

    def validate(self) -> None:
        """Raise ConfigValidationError if the pod regex does not compile."""
        try:
            re.compile(self.pod_regex_str)
        except re.error as err:
            raise ConfigValidationError(
                f"{self.pod_regex_str} is not a valid regex {err}"
            ) from err


@dataclass
class ConfigConfig:
    regenerate: bool = yaml_field(
        "regenerate", Kind.BOOL, default=False, readonly=True, omitempty=True
    )


@dataclass
class LogsConfig:
    file_str: str = yaml_field("file", Kind.STRING)
    grep: str = yaml_field("grep", Kind.STRING)

    def validate(self) -> None:
        """Raise ConfigValidationError if no file is given and the working directory is unknown."""
        if self.file_str:
            return
        try:
            os.getcwd()
        except OSError as err:
            raise ConfigValidationError(
                f"failed to get PWD, {err} "
                f"(try using `{PROGRAM} logs -f <full path dest zip file>)`"
            ) from err

    def file_path(self) -> str:
        """The zip file to write logs to."""
        if self.file_str:
            return self.file_str
        try:
            cwd = os.getcwd()
        except OSError:
            cwd = ""
        return os.path.join(cwd, f"{PROGRAM}_logs.zip")


@dataclass
class ScriptingConfig:
    env: dict[str, Any] = yaml_field("env", Kind.MAP, default={})
    source: str = yaml_field("source", Kind.STRING, default="")
    sources: list[str] = yaml_field("sources", Kind.STRING_LIST, default=[])
    watch_scripts: bool = yaml_field("watchScripts", Kind.BOOL, default=True)
    active: list[str] = yaml_field("active", Kind.STRING_LIST, default=[])
    console: bool = yaml_field("console", Kind.BOOL, default=True)