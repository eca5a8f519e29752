# hatchmsg

A small messaging service. It accepts outgoing SMS, MMS and email messages
through a JSON API and incoming ones through provider webhooks, groups them
into conversations between two contacts, stores them in a local SQLite
database and lets you browse the stored conversations over HTTP.

## Installing

```
pip install .
```

To run the test suite as well:

```
pip install ".[test]"
pytest
```

## Running the service

```
hms serve
```

`hms serve` loads the configuration, opens the database (creating it and
applying the schema migrations if needed), starts a background thread that
polls once a second for scheduled messages that are due, and serves HTTP on
the listen address, `:8080` by default (every interface, port 8080).

Running `hms` without a subcommand prints the help. Options:

- `--config FILE` – read settings from `FILE` instead of searching for one.
- `-t`, `--toggle` – accepted, but has no effect.

Log records are written to standard output as one JSON object per line.
`hms` exits with status 255 on a command-line error and 2 if the service
stops because of a database, network or configuration error.

## Configuration

Without `--config`, settings are read from `hms-config.yaml` (or
`hms-config.yml`), looked for first in `$HOME` and then in the working
directory. A file given with `--config` may end in `.yaml`, `.yml` or
`.json`. A missing file is not an error; it is logged and the defaults are
used.

Each setting is taken from its environment variable if that is set and not
empty, otherwise from the file, otherwise from the default:

| Key              | Environment variable | Default             |
|------------------|----------------------|---------------------|
| `listen_address` | `LISTEN_ADDRESS`     | `:8080`             |
| `db.host`        | `DB_HOST`            | `localhost`         |
| `db.port`        | `DB_PORT`            | `5432`              |
| `db.user`        | `DB_USER`            | `messaging_user`    |
| `db.password`    | `DB_PASSWORD`        | built-in default    |
| `db.name`        | `DB_NAME`            | `messaging_service` |

In the file, the database settings go in a nested `db` mapping:

```yaml
listen_address: "127.0.0.1:9000"
db:
  name: messages
```

The database is the SQLite file named by `db.name`: `messaging_service`
becomes `messaging_service.sqlite3` in the working directory, a name that
already ends in `.db`, `.sqlite` or `.sqlite3` is used as it is, and
`:memory:` gives an in-memory database. `db.host`, `db.port`, `db.user` and
`db.password` are read and carried in `hatchmsg.db.DatabaseConfig` but are
not used to open the database.

`hatchmsg.config.load_config(cfg_file, environ)` returns the resulting
`Config`; `environ` defaults to `os.environ`.

## HTTP API

| Method | Path                               | Purpose                                   |
|--------|------------------------------------|-------------------------------------------|
| GET    | `/healthz`                         | Health check                              |
| POST   | `/api/messages/sms`                | Store an outgoing SMS or MMS message      |
| POST   | `/api/messages/email`              | Store an outgoing email message           |
| POST   | `/api/webhooks/sms`                | Store an incoming SMS or MMS              |
| POST   | `/api/webhooks/email`              | Store an incoming email                   |
| GET    | `/api/conversations`               | List conversations                        |
| GET    | `/api/conversations/{id}/messages` | List the messages of one conversation     |

An email message request looks like this:

```json
{
  "from": "alice@example.com",
  "to": "bob@example.com",
  "body": "Hello! This is a test email message with <b>HTML</b> formatting.",
  "attachments": ["https://example.com/document.pdf"],
  "timestamp": "2024-11-01T14:00:00Z"
}
```

SMS requests carry phone numbers in `from` and `to`, a `type` such as `sms`
or `mms`, and may add a `scheduled_time`. Webhook requests add a
`messaging_provider_id`. Times are RFC 3339. Unknown keys are ignored and
keys are matched without regard to case.

Each request looks up the sender and recipient contacts (by email address for
`/api/messages/email`, by phone number otherwise, including for
`/api/webhooks/email`), creating them if new, finds or creates the
conversation holding both, and stores the message.

Responses:

- Successful requests answer `200` with `Content-Type: application/json`.
  The bodies are JSON strings: `"{\"alive\": true}"` for the health check and
  the webhooks, `"{\"success\": true}"` for the message endpoints (twice,
  one line each, when an SMS request has a `scheduled_time`).
- `/api/conversations` answers a list of `{"id": ...}` objects; the messages
  endpoint answers a list of messages with `id`, `conversation_id`,
  `sender_id`, `type`, `body`, `timestamp` and `scheduled_time`.
- `400 Bad Request` for a body that is not valid JSON or has a field of the
  wrong type, and for a conversation id that is not an integer.
- `429 Too Many Requests` from `/api/messages/sms` when the sender already
  has five or more stored messages whose timestamp is more than sixty
  seconds in the past.
- `500 Internal Server Error` when the database fails.
- `404` for unknown paths and `405` with an `Allow` header for a known path
  used with the wrong method.

## Using it as a library

- `hatchmsg.db.connect(DatabaseConfig(...))` opens the database and applies
  migrations; `apply_migrations(conn)` does the latter alone. Failures raise
  `DatabaseError`.
- `hatchmsg.store.ConversationStore(conn)` reads and writes contacts,
  conversations and messages (`upsert_contact`, `upsert_conversation`,
  `save_message`, `list_conversations`, `get_messages_by_conversation_id`,
  `get_message_count_by_sender_id`, `get_scheduled_messages`).
- `hatchmsg.server.Endpoints(listen_address, store)` is a WSGI application.
  `dispatch(method, path, body)` routes one request and returns a `Response`;
  `listen_and_serve()` serves it with the standard-library WSGI server.
- `hatchmsg.scheduled.ScheduledSender(store, interval)` polls the store;
  `run_once()` returns the messages that are due, `start()` and `stop()`
  control the background thread.

## What it does not do

- Messages are only stored. Nothing is delivered to an SMS or email provider,
  and the scheduled sender fetches due messages without sending them or
  marking them sent.
- A message's `attachments` and `scheduled_time` are accepted in requests but
  not stored, so stored messages never become due for the scheduled sender.
- There is no authentication, and no server other than a plain HTTP one.