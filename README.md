# vulnscout

Building blocks for a container image vulnerability scanner: command-line option objects, management of the local vulnerability database, and cache operations.

## Installation

```
pip install .
```

To run the test suite:

```
pip install ".[test]"
pytest
```

## What is inside

- `vulnscout.options`: option groups built from parsed flags. These are `GlobalOption`, `ArtifactOption`, `CacheOption`, `DBOption`, `ImageOption` and `ReportOption`. The package also provides the `Severity`, `VulnType` and `SecurityCheck` enumerations and `split_severity`. Invalid combinations raise `OptionError`.
- `vulnscout.db`: database metadata handling.
  - `Metadata` holds the metadata and converts it to and from JSON.
  - `MetadataFile` reads and removes the metadata file in a cache directory.
  - `db_path` and `metadata_path` give the file locations inside a cache directory.
  - `Client` decides whether the database needs an update (`needs_update`). It downloads a gzipped database (`download`) and records when the download happened (`update_metadata`). Failures raise `DBError`.
- `vulnscout.operation`: `Cache`, with `reset`, `clear_db`, `clear_artifacts` and `close`. Also `download_db` and `show_db_info`. Failures raise `OperationError`.
- `vulnscout.artifact_option`: `Option`, which combines the option groups for a local scan. It has `init` and `skip_scan`.
- `vulnscout.client_option`: `ClientOption` for scanning against a remote server, and `split_custom_headers`.
- `vulnscout.server_config`: `ServerConfig` for running the server.

## Example

```python
from vulnscout.options import DBOption, OptionError

opt = DBOption(skip_update=True, download_db_only=True)
try:
    opt.init()
except OptionError as exc:
    print(exc)  # --skip-update and --download-db-only options can not be specified both
```

```python
from vulnscout.client_option import split_custom_headers

headers = split_custom_headers(["x-api-token:token", "malformed"])
```