import json

from channels.generic.websocket import AsyncWebsocketConsumer

from pos.permissions import can_work_department
from pos.services.notify import queue_group
from pos.services.routing import category_for_department


class DepartmentQueueConsumer(AsyncWebsocketConsumer):
    """Pushes ``queue.refresh`` events to a department dashboard."""

    async def connect(self):
        self.department = self.scope["url_route"]["kwargs"]["department"]
        if category_for_department(self.department) is None:
            await self.close()
            return
        if not can_work_department(self.scope.get("user"), self.department):
            await self.close()
            return
        self.group = queue_group(self.department)
        await self.channel_layer.group_add(self.group, self.channel_name)
        await self.accept()
        await self.send(json.dumps({"type": "welcome", "department": self.department}))

    async def disconnect(self, close_code):
        group = getattr(self, "group", None)
        if group:
            await self.channel_layer.group_discard(group, self.channel_name)

    async def queue_refresh(self, event):
        # event: {"type": "queue.refresh", "department": ..., "reason": ..., "ts": ...}
        await self.send(json.dumps(event))
