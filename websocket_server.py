# websocket_server.py
"""
Push-Kanal für den Desktop: jede Statusänderung eines Druckauftrags geht als
{"type": "print_job", ...} an alle verbundenen Clients.
"""
import asyncio
import json

import websockets

from config import WS_HOST, WS_PORT

connected_clients = set()
WS_LOOP = None
API_INSTANCE = None  # wird in main.py gesetzt


def set_api_instance(api):
    global API_INSTANCE
    API_INSTANCE = api


async def broadcast(message_dict: dict) -> int:
    """Sendet an alle Clients, nicht erreichbare fliegen raus. Rückgabe: Anzahl Empfänger."""
    clients = list(connected_clients)
    if not clients:
        return 0
    data = json.dumps(message_dict)
    results = await asyncio.gather(*(ws.send(data) for ws in clients), return_exceptions=True)
    delivered = 0
    for ws, result in zip(clients, results):
        if isinstance(result, Exception):
            print(f"[broadcast] Client getrennt: {result!r}")
            connected_clients.discard(ws)
        else:
            delivered += 1
    return delivered


def broadcast_from_anywhere(message_dict: dict) -> bool:
    """Aus Worker-Threads (Dispatcher) in die WS-Schleife einreihen."""
    loop = WS_LOOP
    if loop is None or not loop.is_running():
        print(f"[broadcast] WS-Server läuft nicht, {message_dict.get('type')} verworfen")
        return False
    asyncio.run_coroutine_threadsafe(broadcast(message_dict), loop)
    return True


async def handle_message(websocket, data: dict):
    msg_type = data.get("type")
    print(f"[ws_handler] msg_type = {msg_type}")

    if API_INSTANCE is None:
        await websocket.send(json.dumps({"type": "error", "message": "API nicht initialisiert"}))
        return

    if msg_type == "request_printers":
        result = await asyncio.to_thread(API_INSTANCE.list_printers, bool(data.get("refresh")))
        await websocket.send(json.dumps({"type": "printers", **result}))

    elif msg_type == "request_print_job":
        job_id = (data.get("job_id") or "").strip()
        if not job_id:
            await websocket.send(json.dumps({"type": "error", "message": "job_id erforderlich"}))
            return
        result = API_INSTANCE.get_print_job(job_id)
        await websocket.send(json.dumps({"type": "print_job", **result}))

    else:
        print(f"[ws_handler] Unbekannter msg_type: {msg_type}")


async def ws_handler(websocket):
    connected_clients.add(websocket)
    print(f"[ws_handler] Client verbunden ({len(connected_clients)} aktiv)")
    try:
        async for message in websocket:
            try:
                data = json.loads(message)
            except json.JSONDecodeError:
                print("[ws_handler] JSONDecodeError, Nachricht ignoriert")
                continue
            if not isinstance(data, dict):
                continue
            await handle_message(websocket, data)
    finally:
        connected_clients.discard(websocket)
        print("[ws_handler] Client getrennt")


async def serve_jobs(host: str = WS_HOST, port: int = WS_PORT):
    global WS_LOOP
    WS_LOOP = asyncio.get_running_loop()
    async with websockets.serve(ws_handler, host, port, max_size=None):
        print(f"[ws] Druckstatus auf ws://{host}:{port}")
        await asyncio.Future()


def start_ws_server(host: str = WS_HOST, port: int = WS_PORT):
    """Eigener Thread, eigene Schleife; broadcast_from_anywhere findet sie über WS_LOOP."""
    global WS_LOOP
    try:
        asyncio.run(serve_jobs(host, port))
    finally:
        WS_LOOP = None
