import json

from flowcanvas.core.Canvas import Canvas
from flowcanvas.core.Node import Message
from flowcanvas.core.Types import NodeVariant, Point
from flowcanvas.server.completion import EchoCompletion
from flowcanvas.server.serializers.canvas_serializer import serialize_interaction, serialize_snapshot


class TestCanvasSerializer:

    def setup_method(self):
        self.canvas = Canvas(EchoCompletion())
        self.source = self.canvas.add_node(NodeVariant.SOURCE, Point(100, 100))
        self.processor = self.canvas.add_node(NodeVariant.PROCESSOR, Point(600, 100))
        self.edge_id = self.canvas.connect(self.source, self.processor).edge_id
        self.canvas.set_draft(self.source, "draft text")

    def test_snapshot_shape(self):
        data = serialize_snapshot(self.canvas.snapshot())

        assert data["version"] == self.canvas.version
        assert data["viewport"] == {"zoom": 1.0, "pan": {"x": 0, "y": 0}}
        assert data["interaction"] == {"state": "IDLE"}

        source, processor = data["nodes"]
        assert source == {
            "id": self.source,
            "type": "source",
            "position": {"x": 100, "y": 100},
            "width": 300,
            "height": 120,
            "ports": {"output": {"x": 400, "y": 150}},
            "data": {"draft": "draft text"},
        }
        assert processor["type"] == "processor"
        assert processor["ports"] == {"input": {"x": 600, "y": 150}}
        assert processor["data"] == {"messages": [], "pending": False}

        assert data["edges"] == [{
            "id": self.edge_id,
            "source": self.source,
            "target": self.processor,
            "path": {"from": {"x": 400, "y": 150}, "to": {"x": 600, "y": 150}},
        }]

        # Must survive the wire
        json.dumps(data)

    def test_messages_are_serialized(self):
        self.canvas.graph.append_message(self.processor, Message.user("hi"))
        data = serialize_snapshot(self.canvas.snapshot())
        message = data["nodes"][1]["data"]["messages"][0]
        assert message["role"] == "user"
        assert message["content"] == "hi"
        assert set(message) == {"id", "role", "content", "timestamp"}

    def test_connecting_has_pending_edge(self):
        self.canvas.pointer_down(Point(400, 150))
        self.canvas.pointer_move(Point(480, 200))
        data = serialize_snapshot(self.canvas.snapshot())

        assert data["interaction"] == {
            "state": "CONNECTING",
            "sourceId": self.source,
            "pointer": {"x": 480, "y": 200},
            "pendingEdge": {"from": {"x": 400, "y": 150}, "to": {"x": 480, "y": 200}},
        }

    def test_other_interaction_states(self):
        self.canvas.pointer_down(Point(150, 150))
        dragging = serialize_interaction(self.canvas.controller.state)
        assert dragging == {"state": "DRAGGING_NODE", "nodeId": self.source, "grabOffset": {"x": 50, "y": 50}}
        self.canvas.pointer_up(Point(150, 150))

        self.canvas.pointer_down(Point(20, 500))
        assert serialize_interaction(self.canvas.controller.state) == {
            "state": "PANNING", "anchor": {"x": 20, "y": 500},
        }
        self.canvas.pointer_up(Point(20, 500))

        self.canvas.pointer_down(Point(945, 345))
        assert serialize_interaction(self.canvas.controller.state) == {
            "state": "RESIZING",
            "nodeId": self.processor,
            "anchor": {"x": 945, "y": 345},
            "initialSize": {"width": 350, "height": 250},
        }
