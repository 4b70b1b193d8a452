"""终端聊天前端。

只负责展示会话状态与转发命令，不包含业务逻辑：
所有状态都来自 build_session 返回的 SessionManager。

命令：
  /new                  新建会话
  /list                 列出会话（最新的在前）
  /open <id>            切换活动会话
  /clear                清空活动会话的消息
  /settings [k=v ...]   查看或修改 model / temperature / max_tokens
  /health               检查后端状态
  /quit                 退出
其他输入作为一轮对话提交。
"""

import argparse
import asyncio
import sys
from typing import Optional, TextIO

from chat_core.api.service import build_session
from chat_core.config.settings import ChatCoreSettings, settings
from chat_core.domain.events import TurnEvent
from chat_core.domain.exceptions import BusinessError
from chat_core.domain.models import Role
from chat_core.session.manager import SessionManager


HELP_TEXT = __doc__.split("命令：", 1)[1].split("其他输入", 1)[0]


class ConsoleApp:
    def __init__(self, session: SessionManager, out: TextIO = sys.stdout):
        self.session = session
        self.out = out
        self._turn_task: Optional[asyncio.Task] = None
        session.subscribe(self.on_turn_event)

    def print(self, text: str = "") -> None:
        self.out.write(text + "\n")
        self.out.flush()

    def on_turn_event(self, event: TurnEvent) -> None:
        if event.kind == "started":
            self.print("[系统] 等待回复...")
        elif event.kind == "completed" and event.message is not None:
            self.print(f"助手: {event.message.content}")
        elif event.kind == "failed" and event.error is not None:
            self.print(f"错误: {event.error.message}")

    async def handle_line(self, line: str) -> bool:
        """处理一行输入，返回 False 表示退出。"""

        text = line.strip()
        if not text:
            return True
        if not text.startswith("/"):
            self.submit(text)
            return True

        command, _, arg = text.partition(" ")
        arg = arg.strip()
        try:
            if command == "/quit":
                return False
            if command == "/new":
                cid = self.session.new_conversation()
                self.print(f"[系统] 新会话 {cid}")
            elif command == "/list":
                self.show_conversations()
            elif command == "/open":
                conv = self.session.select_conversation(arg)
                self.print(f"[系统] 会话: {conv.title} ({conv.id})")
                for m in conv.messages:
                    who = "用户" if m.role is Role.USER else "助手"
                    self.print(f"{who}: {m.content}")
            elif command == "/clear":
                self.session.clear_active_conversation()
                self.print("[系统] 已清空")
            elif command == "/settings":
                self.change_settings(arg)
            elif command == "/health":
                status = await self.session.check_backend()
                mark = "✓" if status.ok else "✗"
                self.print(f"{mark} {status.message}")
            else:
                self.print(HELP_TEXT)
        except BusinessError as e:
            self.print(f"错误: {e.message}")
        return True

    def submit(self, text: str) -> None:
        # 等待回复时不接受新提交，与界面上禁用发送按钮一致
        if self.session.busy:
            self.print("[系统] 上一条消息仍在等待回复")
            return
        self._turn_task = asyncio.ensure_future(self._run_turn(text))

    async def _run_turn(self, text: str) -> None:
        try:
            await self.session.submit_turn(text)
        except BusinessError as e:
            self.print(f"错误: {e.message}")

    def show_conversations(self) -> None:
        convs = self.session.list_conversations()
        if not convs:
            self.print("[系统] 还没有会话")
            return
        active = self.session.active_conversation_id
        for c in convs:
            marker = "*" if c.id == active else " "
            self.print(f"{marker} {c.id}  {c.title}  ({len(c.messages)} 条)")

    def change_settings(self, arg: str) -> None:
        store = self.session.settings_store
        if arg:
            changes = {}
            for pair in arg.split():
                key, _, value = pair.partition("=")
                if key == "model":
                    changes["model"] = value
                elif key == "temperature":
                    changes["temperature"] = float(value)
                elif key in ("max_tokens", "maxTokens"):
                    changes["max_tokens"] = int(value)
                else:
                    self.print(f"[系统] 未知设置项 {key}")
                    return
            store.update(**changes)
        current = store.current
        self.print(f"model={current.model} temperature={current.temperature} max_tokens={current.max_tokens}")

    async def run(self, stdin: TextIO = sys.stdin) -> None:
        loop = asyncio.get_running_loop()
        status = await self.session.check_backend()
        self.print(("✓ " if status.ok else "✗ ") + status.message)
        while True:
            line = await loop.run_in_executor(None, stdin.readline)
            if not line:
                break
            try:
                keep_going = await self.handle_line(line)
            except ValueError as e:
                self.print(f"错误: {e}")
                continue
            if not keep_going:
                break
        if self._turn_task is not None and not self._turn_task.done():
            await self._turn_task


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="chat-core", description="Terminal chat client")
    parser.add_argument("--mock", action="store_true", help="use the offline mock gateway")
    parser.add_argument("--storage-root", help="directory for persisted conversations and settings")
    parser.add_argument("--backend-url", help="base URL of the chat backend")
    args = parser.parse_args(argv)

    overrides = {}
    if args.mock:
        overrides["gateway_mode"] = "mock"
    if args.storage_root:
        overrides["storage_root"] = args.storage_root
    if args.backend_url:
        overrides["backend_url"] = args.backend_url
    config = ChatCoreSettings(**overrides) if overrides else settings

    session = build_session(config)
    asyncio.run(ConsoleApp(session).run())
    return 0


if __name__ == "__main__":
    sys.exit(main())
