# packlauncher

A library of the pieces a game launcher needs to manage mods, resource
packs and downloads. It uses only the standard library.

## Modules

- `packlauncher.murmur2`: incremental MurmurHash2 with seed 1, as used to
  fingerprint files. Bytes for which a filter returns true are skipped
  (`murmur2_hash` for seekable binary streams, `hash_bytes` for bytes).
- `packlauncher.news`: `NewsEntry` and `news_entry_from_xml`, which reads
  the `title`, `content` and `id` children of an XML element or document
  string. It falls back to "Untitled" and "No content." when they are missing.
- `packlauncher.private_packs`: `PrivatePackManager` keeps a set of private
  pack codes in a text file, one code per line. It offers `load`, `save`,
  `add`, `remove` and `current_pack_codes`. As a context manager it loads
  on entry and saves on exit. `save` writes only when something changed.
- `packlauncher.component`: `NewComponentForm` holds the name and uid typed
  for a new component. `suggest_uid` builds `org.multimc.custom.<letters>`
  from a name. `can_accept` rejects empty or blacklisted uids.
- `packlauncher.fswatch`: `RecursiveFileWatcher` lists the files under a
  root that a matcher accepts. You detect changes by calling `poll()`.
  Callbacks report single file changes and changes to the file list.
- `packlauncher.resource`: `Resource` describes a file or folder in an
  instance directory. It gives the type (`ResourceType`), name, size and
  modification time. It can enable or disable the resource through the
  `.disabled` suffix (`EnableAction`) and compare two resources (`SortType`).
  It can also delete the resource. The module has the helpers
  `human_readable_size` and `unique_resource_name`.
- `packlauncher.netrequest`: `NetRequest` runs one HTTP request into a
  `Sink`, such as `ByteArraySink`. It follows redirects, and when
  `enable_auto_retry(True)` is set it waits and retries after HTTP 429.
  The transport can be swapped. The default uses `urllib`. The module also
  has the helpers `parse_retry_after`, `fix_location` and `format_progress`.
- `packlauncher.netjob`: `NetJob` runs requests on a thread pool. Failed
  requests are retried up to three times. An optional prompt callback can
  ask for a further retry. It reports `failed_actions`, `failed_files` and
  `is_online`.
- `packlauncher.resource_api`: `ResourceAPI` is an abstract base with the
  request flow for searching projects and listing versions. It also fetches
  project info and picks dependency versions, which are returned as
  `IndexedPack` and `IndexedVersion`. Failures raise `ApiError` and aborts
  raise `RequestAborted`. The helpers `map_mc_version_to_modrinth` and
  `game_versions_string` format game versions.
- `packlauncher.profile_setup`: `ProfileSetup` checks whether a profile name
  is available and creates the profile for an access token. The module also
  has `NameStatus`, `MojangError`, `is_valid_profile_name`,
  `interpret_name_check` and `format_setup_error`.

## Examples

Fingerprint a file, skipping whitespace bytes:

```python
from packlauncher.murmur2 import hash_bytes

with open("mod.jar", "rb") as f:
    fingerprint = hash_bytes(f.read(), lambda b: b in b"\t\n\r ")
```

Disable a mod:

```python
from packlauncher.resource import Resource, EnableAction

mod = Resource("mods/example.jar")
mod.enable(EnableAction.DISABLE)   # renames it to example.jar.disabled
```

Suggest a component uid:

```python
from packlauncher.component import suggest_uid

suggest_uid("My Tweaks")   # "org.multimc.custom.mytweaks"
```

Download a few files concurrently:

```python
from packlauncher.netjob import NetJob
from packlauncher.netrequest import ByteArraySink, NetRequest, RequestState

job = NetJob("downloads")
sinks = [ByteArraySink() for _ in range(2)]
job.add_net_action(NetRequest("https://example.com/a.json", sinks[0]))
job.add_net_action(NetRequest("https://example.com/b.json", sinks[1]))
if job.run() is RequestState.SUCCEEDED:
    payloads = [sink.data for sink in sinks]
```

## What it does not do

There is no graphical interface and no command-line program. The library
does not launch the game. `ResourceAPI` has no platform built in. To query a
platform you subclass it and supply the URL builders and JSON loaders. File
watching works by polling and does not use operating-system notifications.

## Running the tests

```
pip install ".[test]"
pytest
```