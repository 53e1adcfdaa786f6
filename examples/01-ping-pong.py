import asyncio

from asyncosc import Float, Int, OscMessage, OscSocket, String


async def server(sock: OscSocket):
    packet, peer = await sock.recv()
    print(f'[server] {packet} from {peer}')
    assert packet == OscMessage('/glitch', (Float(0.17), String('ultra')))
    await sock.send_to(('/ack', 1), peer)


async def main():
    async with (
        await OscSocket.bind('127.0.0.1:0') as srv,
        await OscSocket.bind('127.0.0.1:0') as client,
    ):
        task = asyncio.create_task(server(srv))

        await client.connect(srv.local_addr())
        await client.send(('/glitch', (0.17, 'ultra')))

        packet, peer = await client.recv()
        print(f'[client] {packet} from {peer}')
        assert packet == OscMessage('/ack', (Int(1),))

        await task


if __name__ == '__main__':
    asyncio.run(main())
