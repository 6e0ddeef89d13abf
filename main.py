# main.py
import threading

import webview

from api import Api
from config import DESKTOP_URL, HTTP_HOST, HTTP_PORT
import webapp
import websocket_server
from websocket_server import start_ws_server


def start_http_server():
    print(f"HTTP-Server auf http://{HTTP_HOST}:{HTTP_PORT}")
    webapp.flask_app.run(host=HTTP_HOST, port=HTTP_PORT)


def main():
    api = Api()
    webapp.set_api_instance(api)
    websocket_server.set_api_instance(api)
    api.list_printers()

    threading.Thread(target=start_ws_server, daemon=True).start()
    threading.Thread(target=start_http_server, daemon=True).start()

    webview.create_window(
        "Etikettendruck",
        url=DESKTOP_URL,
        js_api=api,
        width=1024,
        height=700,
    )
    webview.start(debug=False)


if __name__ == "__main__":
    main()
