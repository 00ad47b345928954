import asyncio

from flowcanvas.core.Types import InteractionKind, Point, PointerButton
from flowcanvas.server.completion import EchoCompletion
from flowcanvas.server.state import CanvasState
from flowcanvas.server.trace import socket_server
from flowcanvas.server.trace.socket_server import _button, _point, _schedule, create_socket_server


class TestSocketServer:

    def setup_method(self):
        self.state = CanvasState(EchoCompletion(), seed_demo=True)
        self.sio = create_socket_server(self.state)
        self.handlers = self.sio.handlers["/"]

    def call(self, event, data=None):
        async def run():
            await self.handlers[event]("sid-1", data)
            # Let scheduled emits run before the loop closes
            await asyncio.sleep(0)
        asyncio.run(run())

    def test_registers_pointer_events(self):
        for event in ("pointer_down", "pointer_move", "pointer_up", "cancel_connection", "wheel", "key_press"):
            assert event in self.handlers

    def test_payload_helpers(self):
        assert _point({"x": "12", "y": 4}) == Point(12.0, 4.0)
        assert _point(None) == Point(0.0, 0.0)
        assert _button({"button": 0}) == PointerButton.PRIMARY
        assert _button({}) == PointerButton.PRIMARY
        assert _button({"button": 7}) == PointerButton.SECONDARY

    def test_pointer_gesture_drives_canvas(self):
        canvas = self.state.canvas
        # Seeded source sits at (80, 120); grab its body and drag it
        self.call("pointer_down", {"x": 100, "y": 200, "button": 0})
        assert canvas.controller.kind == InteractionKind.DRAGGING_NODE

        self.call("pointer_move", {"x": 120, "y": 220, "pressed": True})
        self.call("pointer_up", {"x": 120, "y": 220})

        source = [n for n in canvas.graph.nodes.values() if n.isSource()][0]
        assert source.position == Point(100, 140)
        assert canvas.controller.is_idle()

    def test_wheel_and_cancel(self):
        canvas = self.state.canvas
        self.call("wheel", {"deltaY": 120, "ctrlKey": True})
        assert abs(canvas.viewport.zoom - 0.9) < 1e-9

        self.call("wheel", {"deltaY": 120})
        assert abs(canvas.viewport.zoom - 0.9) < 1e-9

        # Seeded source output port: (80 + 300, 120 + 50) in graph space, zoom 0.9
        self.call("pointer_down", {"x": 380 * 0.9, "y": 170 * 0.9})
        assert canvas.controller.kind == InteractionKind.CONNECTING
        self.call("cancel_connection")
        assert canvas.controller.is_idle()

    def test_key_press_submits(self):
        canvas = self.state.canvas
        source = [n for n in canvas.graph.nodes.values() if n.isSource()][0]

        async def run():
            await self.handlers["key_press"]("sid-1", {"nodeId": source.id, "key": "Enter"})
            await canvas.drain()

        asyncio.run(run())

        processor = [n for n in canvas.graph.nodes.values() if n.isProcessor()][0]
        assert [m.content for m in processor.messages] == ["What is a node graph?", "Echo: What is a node graph?"]

    def test_scheduled_emits_are_tracked_until_done(self):
        async def emit():
            return None

        async def run():
            task = _schedule(emit())
            assert task in socket_server._pending_emits
            await task
            await asyncio.sleep(0)
            assert task not in socket_server._pending_emits

        asyncio.run(run())

    def test_schedule_without_loop_is_dropped(self):
        async def emit():
            return None

        assert _schedule(emit()) is None
