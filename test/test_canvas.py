import asyncio

from flowcanvas.core.Canvas import Canvas
from flowcanvas.core.Interaction import Connecting
from flowcanvas.core.Types import InteractionKind, NodeVariant, Point, Size
from flowcanvas.server.completion import EchoCompletion


class TestCanvas:

    def setup_method(self):
        self.canvas = Canvas(EchoCompletion())
        self.reasons = []
        self.canvas.on_change(lambda reason, node_id: self.reasons.append((reason, node_id)))
        self.source = self.canvas.add_node(NodeVariant.SOURCE, Point(100, 100))
        self.processor = self.canvas.add_node(NodeVariant.PROCESSOR, Point(600, 100))

    def test_commands_notify_listeners(self):
        self.canvas.move_node(self.source, Point(0, 0))
        self.canvas.resize_node(self.source, Size(400, 400))
        edge = self.canvas.connect(self.source, self.processor)
        self.canvas.disconnect(edge.edge_id)
        self.canvas.zoom_by(1.1)
        self.canvas.reset_view()

        assert self.reasons == [
            ("node_added", self.source),
            ("node_added", self.processor),
            ("node_moved", self.source),
            ("node_resized", self.source),
            ("edge_added", edge.edge_id),
            ("edge_deleted", edge.edge_id),
            ("viewport", None),
            ("viewport", None),
        ]
        assert self.canvas.version == len(self.reasons)

    def test_rejected_commands_do_not_notify(self):
        self.reasons.clear()
        assert not self.canvas.connect(self.processor, self.source).accepted
        assert self.canvas.disconnect("conn-nope") is False
        assert self.canvas.delete_node("missing") is False
        assert self.canvas.move_node("missing", Point(1, 1)) is False
        assert self.canvas.set_draft(self.processor, "nope") is False
        assert self.canvas.cancel_connection() is False
        assert self.canvas.wheel(100, zoom_modifier=False) is False
        assert self.reasons == []

    def test_broken_listener_does_not_break_mutation(self):
        def explode(reason, node_id):
            raise RuntimeError("listener failure")

        self.canvas.on_change(explode)
        assert self.canvas.move_node(self.source, Point(5, 5)) is True
        assert self.canvas.graph.get_node(self.source).position == Point(5, 5)
        assert self.reasons[-1] == ("node_moved", self.source)

    def test_enter_submits_focused_source(self):
        self.canvas.connect(self.source, self.processor)

        async def scenario():
            self.canvas.set_draft(self.source, "line one")
            assert self.canvas.key_press(self.source, "Enter", shift=True) is False
            assert self.canvas.key_press(self.source, "a") is False
            assert self.canvas.graph.get_node(self.source).draft == "line one"

            assert self.canvas.key_press(self.source, "Enter") is True
            await self.canvas.drain()

        asyncio.run(scenario())

        processor = self.canvas.graph.get_node(self.processor)
        assert [m.content for m in processor.messages] == ["line one", "Echo: line one"]
        assert self.canvas.key_press(self.processor, "Enter") is False

    def test_connect_by_pointer_reports_edge(self):
        self.canvas.pointer_down(Point(400, 150))
        self.canvas.pointer_move(Point(500, 150))
        self.canvas.pointer_up(Point(600, 150))

        edge_id = "conn-component-1-component-2"
        assert self.reasons[-1] == ("edge_added", edge_id)
        assert self.canvas.graph.get_edge(edge_id) is not None

    def test_delete_node_mid_gesture_resets_interaction(self):
        self.canvas.pointer_down(Point(150, 150))
        assert self.canvas.controller.kind == InteractionKind.DRAGGING_NODE
        self.canvas.delete_node(self.source)
        assert self.canvas.controller.is_idle()

    def test_wheel_zoom(self):
        assert self.canvas.wheel(-100, zoom_modifier=True) is True
        assert abs(self.canvas.viewport.zoom - 1.1) < 1e-9
        assert self.reasons[-1] == ("viewport", None)

    def test_snapshot_is_a_copy(self):
        self.canvas.connect(self.source, self.processor)
        self.canvas.pointer_down(Point(400, 150))
        snapshot = self.canvas.snapshot()

        self.canvas.move_node(self.source, Point(999, 999))
        self.canvas.zoom_by(2)
        self.canvas.set_draft(self.source, "changed")

        source = [n for n in snapshot.nodes if n.id == self.source][0]
        assert source.position == Point(100, 100)
        assert source.draft == ""
        assert snapshot.viewport.zoom == 1.0
        assert [e.id for e in snapshot.edges] == ["conn-component-1-component-2"]
        assert snapshot.interaction == Connecting(self.source, Point(400, 150))
        assert snapshot.version < self.canvas.version
