# konvergo

Building blocks for the host side of a media player application.

## Modules

- `konvergo.paths` – application and helper names per platform
  (`main_name`, `helper_name`), per-user data, cache and log directories
  (`data_dir`, `cache_dir`, `log_dir`), resource lookup next to the
  application, in `../Resources` or under an install prefix
  (`resource_dir`, `web_client_path`), sound files in the data directory
  (`sounds_path`, which raises `FileNotFoundError` when the sound is
  missing) and per-user local socket names (`socket_name`).
- `konvergo.utils` – the `Platform` bit mask with `current_platform` and
  `platform_any_except`, `FatalError`, `sanitize_for_http_separators`,
  `open_json_document` for JSON files with `//` comment lines,
  `safely_write_file` for atomic writes, `current_user_id`, `client_uuid`,
  `primary_ipv4_address`, `computer_name` and `is_process_alive`.
- `konvergo.updater` – builds the update check URL (`check_url`,
  `final_url`), parses the update feed (`parse_update_data`, preferring a
  delta package over a full one), downloads files and verifies them by
  SHA-1 (`UpdateFile`), and drives a whole download with `Updater`, which
  writes a `_readyToApply` marker once every needed file is verified.
  Redirects are only followed to hosts accepted by `is_allowed_redirect`.
- `konvergo.updates` – `UpdateManager` finds the newest downloaded version
  that is ready to apply (`have_update`) and clears package directories of
  versions that are not; `OEUpdateManager` moves a system image archive
  into place (`stage_update`) and returns an `UpdateAction` telling the
  caller whether to restart the application or reboot.

## Installation

```
pip install .
```

Python 3.10 or later is required. The tests need the `test` extra:

```
pip install ".[test]"
pytest
```

## Examples

Strip characters that are not allowed in HTTP header tokens:

```python
from konvergo.utils import sanitize_for_http_separators

sanitize_for_http_separators("My (Living) Room")   # "My Living Room"
```

Read the update feed:

```python
from konvergo.updater import parse_update_data

info = parse_update_data(xml_bytes, token="token")
info["version"], info["fileURL"]
```

Download and verify an update, with a fetch function of your own:

```python
from konvergo.updater import Updater
from konvergo.updates import UpdateManager

updater = Updater(UpdateManager("/tmp/updates"), fetch=my_fetch,
                  on_download_complete=print)
updater.start_update_download(info)
```

Find an update that is ready to apply:

```python
from konvergo.updates import UpdateManager

UpdateManager().have_update()   # a version string or None
```

## What this package does not do

It has no commands, no logging setup, no local socket server or client,
no single-instance check, no background helper process and no crash dump
uploading. It never starts the updater or installer programs, and
`OEUpdateManager` only reports that a restart or reboot is needed; acting
on it is up to the caller.