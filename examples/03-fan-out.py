"""
Fan-out - several tasks sending through one socket

Demonstrates:
- sender() handles shared between tasks
- Bundles with a future timetag
- The endpoint staying open until the last handle closes
"""

import asyncio
import time

from asyncosc import OscBundle, OscMessage, OscSocket, OscTime


async def lfo(sender, name: str, steps: int):
    async with sender:
        for step in range(steps):
            await sender.send((f'/lfo/{name}', step / steps))
            await asyncio.sleep(0.01)


async def main():
    async with await OscSocket.bind('127.0.0.1:0') as sink:
        source = await OscSocket.bind('127.0.0.1:0')
        await source.connect(sink.local_addr())

        tasks = [asyncio.create_task(lfo(source.sender(), name, 5)) for name in ('a', 'b', 'c')]

        at = OscTime.from_unix(time.time() + 1.0)
        await source.send(OscBundle(at, (OscMessage.new('/scene', 2), OscMessage.new('/go', True))))

        # The senders keep the endpoint open after the socket itself is closed.
        await source.close()
        await asyncio.gather(*tasks)

        for _ in range(16):
            packet, _ = await sink.recv()
            print(packet)


if __name__ == '__main__':
    asyncio.run(main())
