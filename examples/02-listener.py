"""
OSC Listener - prints every packet arriving on a port

Demonstrates:
- Iterating an OscSocket and matching on stream items
- Loading socket settings from asyncosc.toml
- Bad datagrams reported without ending the loop

Try it with any OSC sender, e.g. ``oscsend localhost 9000 /volume f 0.5``.
"""

import asyncio
import logging
import sys

from asyncosc import (
    DecodeFailed,
    Float,
    OscBundle,
    OscMessage,
    OscSocket,
    ReceiveFailed,
    Received,
    load_config,
)


def show(packet, peer):
    match packet:
        case OscMessage('/volume', (Float(level),)):
            print(f'{peer}: volume -> {level:.2f}')
        case OscMessage(addr, args):
            print(f'{peer}: {addr} {args}')
        case OscBundle(timetag, _):
            print(f'{peer}: bundle @ {timetag.to_unix():.3f}')
            for msg in packet.messages():
                show(msg, peer)


async def main(address: str):
    config = load_config()

    async with await OscSocket.bind(address, config=config.socket) as sock:
        print(f'listening on {sock.local_addr()}')
        async for item in sock:
            match item:
                case Received(packet, peer):
                    show(packet, peer)
                case DecodeFailed(error, peer, data):
                    print(f'{peer}: ignored {len(data)} bytes ({error})')
                case ReceiveFailed(error):
                    print(f'receive error: {error}')


if __name__ == '__main__':
    logging.basicConfig(level=logging.DEBUG)
    try:
        asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else '127.0.0.1:9000'))
    except KeyboardInterrupt:
        pass
