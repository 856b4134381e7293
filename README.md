# bridgecli

This package provides four small command-line tools. Each one works inside your
own logged-in Chrome session. The tools do not download pages themselves.
Instead they send commands over HTTP to a local browser-bridge daemon, which
listens by default at `http://127.0.0.1:10086`. The daemon opens pages, clicks
elements and runs JavaScript in a browser tab. That tab belongs to your own
browser profile, so the tools never have to handle cookies or login headers.

Each command prints one JSON document to stdout. The output is indented and
non-ASCII text is left as it is. On success the document looks like this:

```json
{ "data": ..., "ok": true }
```

On failure it looks like this:

```json
{ "error": { "code": "...", "message": "..." }, "ok": false }
```

A command that fails exits with status 1.

## Requirements

- Python 3.10 or newer.
- The bridge daemon is running locally and its Chrome extension is connected.
- The image tools need you to be signed in to the site already, in that Chrome
  profile.

## Installation

```sh
pip install .
```

To install the test tools as well:

```sh
pip install ".[test]"
```

## Commands

### `baidu-cli search`

```sh
baidu-cli search "claude code"
baidu-cli search "天气 北京" --limit 20
baidu-cli search "大模型" --all
```

This command opens `https://www.baidu.com/s?wd=<query>&rn=<limit>` and reads
the result list from the rendered page. If you give several words, they are
joined with spaces into one query.

- `-n`, `--limit`: the largest number of results to return. The default is 10.
  A value of zero or less is treated as 10.
- `--all`: skip the organic-results filter. That filter currently keeps every
  result, so the output is the same either way. Each result keeps its `tpl`
  field, so you can do your own filtering by template name.

The `data` object holds `query`, `count` and `results`. Each result has `rank`,
`id`, `tpl`, `title`, `url`, `abstract` and `source`. Ranks are renumbered from
1 after filtering and truncation.

Any failure is reported with the code `search_failed`.

### `google-cli search` and `google-cli result`

```sh
google-cli search "python packaging" --limit 5 --hl en
google-cli result https://example.com/
```

`search` opens a Google results page in a new tab. It asks the page for twice
the limit, and never fewer than 10. It then returns a list of
`{title, url, snippet}` that holds at most `--limit` entries.

- `--limit`: the largest number of results. The default is 10.
- `--hl`: the interface language. The default is `en`.

`search` reports these error codes:

- `missing_args`: no query was given.
- `consent_required`: Google showed its consent page. Accept it once in Chrome,
  then run the command again.
- `no_results`: the page held no results that could be read.
- `daemon_unreachable`: the daemon could not be reached.
- `search_failed`: anything else went wrong.

`result` loads one `http` or `https` URL in a new tab. It returns `url`,
`title`, `description` and `text`. The `description` comes from the page's
`description` or `og:description` meta tag. The `text` holds up to 5000
characters of the visible page text.

`result` reports these error codes:

- `missing_args`: no URL was given.
- `invalid_url`: the scheme is not http or https, or the URL has no host.
- `empty_content`: the extracted text is shorter than 50 bytes.
- `daemon_unreachable`: the daemon could not be reached.
- `result_failed`: anything else went wrong.

Both subcommands retry a few times, with short waits, when the page's
JavaScript context is not ready yet or has just been replaced.

### `chatgpt-image-cli generate` (alias `gen`)

```sh
chatgpt-image-cli generate "a red apple on a wooden table"
chatgpt-image-cli generate "夕阳下的富士山" -o ./images
chatgpt-image-cli gen "a cat in a space suit" --timeout 180
```

This command takes these steps:

1. Opens `https://chatgpt.com/images/` in a new tab.
2. Types in the prompt and submits it.
3. Waits for a new image that is at least 400×400 pixels. Images that were
   already on the page before submitting are ignored.
4. Saves the image as `chatgpt-YYYYMMDD-HHMMSS.png` in the output directory.

If the page shows a refusal, content-policy message or rate-limit message, the
command stops early.

The `data` object holds `prompt`, `path` (an absolute path), `bytes` and
`elapsed_ms`. When they are known, it also holds `caption` and
`conversation_url`.

- `-o`, `--out`: the output directory. The default is `.`. It is created if it
  does not exist.
- `--timeout`: how many seconds to wait for the image. The default is 180.

The command needs exactly one prompt argument, so quote it. Otherwise it fails
with `invalid_args`. A failure while generating is reported as
`generate_failed`.

### `nanobanana-cli gen`

```sh
nanobanana-cli gen "a watercolor lighthouse at dawn" -o ./out --thumb-width 320
```

This command opens Gemini in a new tab, sends the prompt and waits for the
image to appear. It then clicks the page's download button. A hook on the
page's `fetch` captures the address of the full-size original, so no browser
download dialog opens. The command fetches the PNG from that address and
writes two files:

- `<YYYYMMDD-HHMMSS>-full.png`: the original image.
- `<YYYYMMDD-HHMMSS>-thumb.png`: a thumbnail scaled locally with bicubic
  resampling. It keeps the image's aspect ratio and is at least 1 pixel tall.

The `data` object holds `prompt`, `full`, `thumb`, `width`, `height`,
`thumb_width` and `elapsed_ms`.

- `-o`, `--out`: the output directory. The default is `.`.
- `--thumb-width`: the thumbnail width in pixels. The default is 256.
- `--timeout`: how many seconds to wait for the image. The default is 300.

The command needs exactly one prompt argument. Otherwise it fails with
`invalid_args`. A failure while generating is reported as `gen_failed`.

Before they start, both image tools check the daemon's `/status` endpoint. If
something is wrong, they stop with one of these codes:

- `daemon_unreachable`
- `daemon_not_running`
- `extension_not_connected`

## Using the library

```python
from bridgecli.browser import Client, DaemonError
from bridgecli import baidu, google_search

client = Client("my-session")
for item in baidu.search(client, "claude code", 5, False):
    print(item.rank, item.title, item.url)

try:
    page = google_search.fetch_result(client, "https://example.com/")
    print(page.title)
except (DaemonError, google_search.InvalidURLError, google_search.EmptyContentError) as exc:
    print("failed:", exc)
```

`bridgecli.browser.Client(session, timeout=90.0, base_url=...)` provides these
methods:

- `status()`
- `call(action, args)`
- `navigate(url, new_tab)`
- `click(selector)`
- `evaluate(code)`
- `evaluate_value(code)`
- `evaluate_json(code)`
- `evaluate_unwrapped(code)`

When the daemon reports an error, the client raises `DaemonError`. When no
connection can be made, it raises `DaemonUnreachableError`.

The image workflows are available as functions:

- `bridgecli.chatgpt.generate(client, Options(prompt, out_dir, timeout))`
- `bridgecli.nanobanana.generate(client, Options(prompt, out_dir, thumb_width, timeout))`

Both raise `GenerationError` when generation fails. The module
`bridgecli.nanobanana` also provides `png_dimensions(data)` and
`write_thumbnail(png_bytes, path, width)`.

## What it does not do

- It does not include the bridge daemon or its browser extension, and it does
  not start them. Both must already be running.
- It never signs in for you, and it never gets past consent pages or
  anti-abuse checks.
- It depends on the current page layouts of the sites it visits. When those
  layouts change, the tools can stop finding results or images.

## Running the tests

```sh
pytest
```