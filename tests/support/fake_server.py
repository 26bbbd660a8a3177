"""Minimal stand-in for a language server, run as a child process by tests.

Usage: fake_server.py <exit-code> [sleep]

Writes a log notification and an initialize response, echoes everything
it reads on stdin back to stdout verbatim, writes a second capability
response (which must reach the client untouched), then exits with the
requested code. With "sleep" it just blocks until terminated.
"""
import json
import sys
import time


def write_frame(out, message) -> None:
    body = json.dumps(message).encode("utf-8")
    out.write(b"Content-Length: %d\r\n\r\n" % len(body) + body)
    out.flush()


def main() -> int:
    exit_code = int(sys.argv[1])
    if "sleep" in sys.argv[2:]:
        time.sleep(60)
        return exit_code

    out = sys.stdout.buffer
    print("fake server starting", file=sys.stderr)
    write_frame(out, {
        "jsonrpc": "2.0",
        "method": "window/logMessage",
        "params": {"type": 3, "message": "starting"},
    })
    write_frame(out, {
        "jsonrpc": "2.0",
        "id": 0,
        "result": {
            "capabilities": {
                "completionProvider": {"resolveProvider": True},
                "hoverProvider": True,
                "renameProvider": True,
                "textDocumentSync": 1,
            },
        },
    })
    out.write(sys.stdin.buffer.read())
    out.flush()
    write_frame(out, {
        "jsonrpc": "2.0",
        "id": 1,
        "result": {"capabilities": {"hoverProvider": True}},
    })
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
