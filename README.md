# daprcli

A Python library for working with Dapr sidecars on your own machine. It finds
running `daprd` instances, builds the commands that start a sidecar next to
your application, calls an application's methods through its sidecar,
publishes events to a pub/sub topic, and reads or sets sidecar metadata. It
also has helpers for Kubernetes upgrades, for docker, and for offline
installation bundles.

## Installing

Install the package with pip. The `test` extra brings in pytest.

## Finding running sidecars

`daprcli.listing.list_instances()` looks at the processes on the machine. It
pairs every `dapr` command-line process with the `daprd` sidecar it started
(matched through the `cliPID` the sidecar reports in its metadata) and returns
one `ListOutput` per application that has an app ID. Each `ListOutput` holds
`app_id`, `http_port`, `grpc_port`, `app_port`, `metrics_enabled`, `command`
(cut to 20 characters), `age`, `created` and `pid`.

```python
from daprcli.listing import list_instances

for instance in list_instances():
    print(instance.app_id, instance.http_port, instance.age)
```

The same module has the small helpers it is built from: `sidecar_arguments`,
`format_age` and `truncate`.

## Invoking methods and publishing events

```python
from daprcli.client import ClientError, new_client

client = new_client()

try:
    reply = client.invoke("orders", "neworder", b'{"id": 1}', "POST", "")
    print(reply)
    client.publish("orders", "pubsub", "deliveries", b'{"id": 1}', "")
except ClientError as err:
    print(f"request failed: {err}")
```

`invoke` raises `ClientError` when the app ID is not running or the answer
has a status outside 200–399. `publish` raises it when an argument is empty,
no instance has the app ID, or the answer is not a 2xx status. Pass a
directory as the last argument to reach the sidecar through its Unix domain
socket in that directory instead of TCP. A payload that is a complete
CloudEvents envelope (`id`, `source`, `specversion`, `type` and `data`) is
sent with the `application/cloudevents+json` content type.

`Standalone` takes any object with a `list()` method returning `ListOutput`
rows, so another source of instances can be plugged in;
`LocalProcesses` is the one `new_client()` uses.

## Sidecar metadata

```python
from daprcli.metadata import get_metadata, put_metadata

put_metadata(3500, "owner", "team-a", "orders", "")
print(get_metadata(3500, "orders", ""))
```

`put_metadata` retries on connection errors and server errors, with a growing
pause between attempts. Both functions use `daprcli.transport.request`, a
small HTTP client that can talk over TCP or a Unix domain socket and raises
`TransportError` when a request fails.

## Preparing a run

`daprcli.run.run(config)` takes a `RunConfig`, validates it and returns a
`RunOutput`. Validation picks a free, generated app ID when none is given and
free ports for any that are unset, raises `RunConfigError` when a given port
is taken, checks that the components directory exists and its YAML files
parse, and fills in the placement address. The output holds the `daprd`
command and, when `arguments` were given, the application command, both as
`daprcli.paths.Command` objects; call `start()` on one to launch it. The
application command has `APP_ID`, `APP_PORT`, `DAPR_HTTP_PORT`,
`DAPR_GRPC_PORT` and `DAPR_METRICS_PORT` set in its environment (unset ports
are left out). When the configuration file turns on mTLS, the sidecar
arguments also point at the local Sentry service.

Default locations under `~/.dapr` come from `daprcli.paths`:
`default_dapr_dir_path()`, `default_dapr_bin_path()`,
`default_components_dir_path()` and `default_config_file_path()`.
`new_dashboard_cmd(port)` builds the command that starts the dashboard.

## Status output

`daprcli.printer` writes status lines with a marker in front of them, for
example `success_status_event(stream, "Started %s", "orders")`. On Windows the
marker is left out. After `enable_json_format()` each line is written as a
JSON object with `time`, `status` and `msg` fields; `disable_json_format()`
turns that off again. `spinner(stream, fmtstr, *args)` shows progress and
returns a function that you call with `Result.SUCCESS` or `Result.FAILURE` to
finish it; only the first call has an effect.

## Docker helpers

`daprcli.docker` runs the `docker` program: `load_docker` feeds an image
archive to `docker load`, `confirm_container_is_running_or_exists` checks a
container, `try_pull_image` pulls an image, and `parse_docker_error` turns
docker's exit codes into readable `DockerError`s.

## Kubernetes upgrades

`daprcli.upgrade` holds the parts of an upgrade that do not need a cluster
client:

- `is_downgrade("1.3.0", "1.4.0")` compares versions.
- `upgrade_chart_values(...)` builds the Helm values, including the mTLS
  certificates and the high-availability setting.
- `parse_into("a.b=c", values)` merges one `key=value` setting into a values
  dictionary.
- `apply_crds(version)` applies the custom resource definitions with
  `kubectl`.

## Offline bundles and old run data

`daprcli.bundle.read_bundle_details(path)` reads a bundle's `details.json`
and returns a `BundleDetails`. It raises `BundleError` when the file does not
parse or a required field is missing or empty.

`daprcli.rundata.delete_run_data_file()` removes the old run-data file from
the temporary directory, under a lock file.

## What this package does not do

There is no command-line program: everything here is a library. It does not
install, initialise or uninstall a local or Kubernetes setup, and it carries
no Kubernetes or Helm client, so it cannot perform an upgrade on a cluster by
itself; it only prepares the values and applies the definitions with
`kubectl`. It does not supervise the sidecar or application processes it
builds commands for.