# kubeshark

Configuration tooling and PCAP helpers for a Kubernetes-aware network
traffic analyzer.

The package holds:

- the complete configuration model (tap, proxy, Docker, release, resources,
  auth, ingress, scripting, logs and pcapdump settings) with its default
  values, in `kubeshark.config_structs` and `kubeshark.config_struct`;
- the `key.path=value` override mechanism, and YAML loading and writing of
  the config file, in `kubeshark.settings`;
- typed, YAML-named dataclass fields and flag-string parsing in
  `kubeshark.fields`;
- a one-shot debouncer in `kubeshark.debounce`;
- duration parsing, filtering of timestamped capture file names and merging
  of PCAP files in `kubeshark.pcap`;
- a small command line, `kubeshark`, in `kubeshark.cli`.

## Installation

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Command line

Print the effective configuration as YAML:

```
kubeshark config
```

Write a config file holding all default values (to the config file in use,
see below):

```
kubeshark config -r
```

Override any value for one run with `--set`, using dotted paths of the YAML
keys. Giving the same key more than once sets a list, and one `--set` may
carry several comma-separated `key=value` items:

```
kubeshark config --set tap.proxy.host=0.0.0.0 --set tap.namespaces=default --set tap.namespaces=kube-system
```

Arguments that name no field, or carry a value of the wrong kind, are logged
as warnings; the valid ones are still applied.

Print the license string held in the configuration:

```
kubeshark license
```

Print the version; with `--debug` it is logged together with the branch,
commit hash and build time:

```
kubeshark version
kubeshark version --debug
```

`-d`/`--debug` is accepted by every command and turns on debug logging.

### Where the configuration comes from

A file named `kubeshark.yaml` in the current directory is used when it
exists; otherwise `~/.kubeshark/config.yaml` is read. Values from the file
are laid over the defaults, and `--set` values are laid over both. Unknown
keys in the file are ignored. An invalid file makes the command exit with
status 1 and a hint to regenerate it with `kubeshark config -r`.

## Library use

```python
from kubeshark.config_struct import create_default_config
from kubeshark.settings import ConfigFlagError, merge_set_flag, pretty_yaml

config = create_default_config()
merge_set_flag(config, ["tap.proxy.front.port=9000", "headless=true"])
print(pretty_yaml(config))

try:
    merge_set_flag(config, ["tap.proxy.front.port=not-a-number"])
except ConfigFlagError as error:
    print(error)
```

`load_config_file(config, config_file_path, cwd, silent)` reads YAML into a
configuration object and returns the path it came from, and
`write_config(config, path)` writes one out. `get_config_with_defaults()`
returns a default `ConfigStruct` with its read-only fields reset.

Capture files carry a `...-YYYYMMDD-HHMMSS...` timestamp in their names;
`filter_files_by_cutoff` keeps those not older than a given moment (names
without a usable timestamp are skipped), and `merge_pcaps` combines several
captures into one Ethernet PCAP file, returning the number of packets
written:

```python
from datetime import datetime
from kubeshark.pcap import filter_files_by_cutoff, merge_pcaps, parse_duration

names = ["capture-20240101-120000.pcap", "capture-20240102-093000.pcap"]
cutoff = datetime.now() - parse_duration("1h30m")
recent = filter_files_by_cutoff(names, cutoff)
merge_pcaps("merged.pcap", [f"captures/{name}" for name in recent])
```

Input files that cannot be opened or read are logged and skipped.

`Debouncer` runs a callback once, a timeout after it is switched on, however
often it is switched on in the meantime. `cancel()` skips a pending run, and
switching it on after that raises `DebouncerCancelledError`:

```python
from kubeshark.debounce import Debouncer

debouncer = Debouncer(0.5, lambda: print("settled"))
debouncer.set_on()
print(debouncer.is_on())
```

## What this package does not do

It does not talk to a Kubernetes cluster. There are no commands to install
or remove the analyzer, open a proxy or port-forward, stream the scripting
console, watch script folders, collect logs, profile containers or copy
capture files out of worker pods. The configuration model describes those
settings, and the PCAP helpers work on files already on local disk.