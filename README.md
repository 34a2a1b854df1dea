# epollchat

A multi-threaded TCP chat server. Clients connect over TCP, sign up or log
in against a MongoDB `users` collection, exchange chat messages, change their
nickname, and issue slash commands that read from or write to character
device files (a BMP180 sensor and an LCD1602 display).

## Installing

```
pip install .
```

For the test suite:

```
pip install ".[test]"
pytest
```

## Running the server

```
epollchat --db-uri mongodb://localhost:27017
```

Options:

- `--host` — address to listen on (default: all interfaces)
- `--port` — port to listen on (default: 9000)
- `--db-uri` — MongoDB connection URI
- `--db-name` — database name (default: `epoll`)

On start the server pings MongoDB and exits with status 1 if it cannot be
reached. It then accepts clients on one readiness loop (`selectors`) and hands
every complete packet to four worker threads. Ctrl-C stops it.

## Wire format

Every packet, in both directions, is:

| bytes | meaning                                          |
|-------|--------------------------------------------------|
| 0–1   | total packet length, header included, big-endian |
| 2–3   | command number, big-endian                       |
| 4–    | protobuf-encoded message body                    |

An outgoing packet is at most 512 bytes; `encode_packet` raises `PacketError`
for a larger body. Incoming packets larger than 512 bytes are dropped, and a
client whose length field is below 2 or above 4096 is disconnected.
`epollchat.packet.encode_packet(command, body)` builds a packet and
`decode_header(data)` reads the header back. `epollchat.recv_buffer.RecvBuffer`
reassembles packets from a stream that may split or join them: `append(data)`,
`extract_packet()` and the `packets()` generator.

Command numbers (`epollchat.packet.Command`):

| command                 | number |
|-------------------------|--------|
| chat message            | 1001   |
| login request           | 1002   |
| login response          | 1003   |
| join (sign-up) request  | 1004   |
| join response           | 1005   |
| join notice             | 1006   |
| leave notice            | 1007   |
| change-name request     | 1010   |
| change-name response    | 1011   |
| change-name notice      | 1012   |
| chat command            | 1013   |
| admin broadcast         | 2000   |

The message bodies are dataclasses in `epollchat.messages` (`ChatMessage`,
`LoginRequest`, `JoinResponse`, `ChangeNameNotice`, `UserInfo` and so on);
each has `to_bytes()` and the class method `from_bytes(data)`, which raises
`DecodeError` on malformed input.

## What the server does with each packet

- **Chat message** — relayed to every logged-in user.
- **Login request** — checked against the database; on success the sender gets
  a login response with its own details and the list of online users, and the
  other users get a join notice. A wrong id or password, or a second login of
  the same account, gets a failed response with a message.
- **Join request** — creates the account (its uid is the number of accounts
  plus 1000), logs it in and answers like a login. Empty fields or a taken id
  get a failed response.
- **Change-name request** — updates the name in the database, answers the
  sender and sends a change-name notice to every logged-in user.
- **Chat command** — text that is a prefix of `/bmp180` reads the sensor device
  and broadcasts the reading; a prefix of `/lcd1602` writes `User Count, N` to
  the display and answers the sender with it. If the device cannot be used,
  only the sender receives `command failed`.
- **Admin broadcast** — logged, and the sender gets a fixed greeting.

When a client disconnects, every remaining user receives a leave notice.

## Using the pieces directly

- `epollchat.server.ChatServer` — `start()`, `accept()`, `handle_read(fd)`,
  `poll(timeout)`, `serve_forever()`, `close()`; usable as a context manager.
- `epollchat.context.ServerContext.create(db, drivers)` — the shared state:
  sessions, logged-in users, database, devices and task queues.
- `epollchat.handlers.PacketHandler` — one method per kind of packet.
- `epollchat.dispatcher.worker_dispatch(handler, fd, data)` — routes a raw
  packet to its handler.
- `epollchat.tasks.TaskChannel` and `start_threads(count, target)` — the
  bounded packet queue and the threads that consume it.
- `epollchat.db.UserDatabase` — account lookup, sign-up and renaming.
- `epollchat.drivers.DriverManager` — device file access; the paths default to
  `/dev/bmp180` and `/dev/lcd1602` and can be overridden.
- `epollchat.sender.PacketSender` — framing and delivery to one session, all
  sessions or all logged-in users.

## What it does not do

There is no client program; clients must speak the wire format above.
Connections are plain TCP without encryption, and passwords are stored and
compared as plain text in MongoDB.