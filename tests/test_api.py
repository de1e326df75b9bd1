import unittest

import aiohttp
from aiohttp import web
from aiohttp.test_utils import TestServer

from thoughtful_chess.api import LichessClient
from thoughtful_chess.errors import ApiError, AuthError, ConfigurationError


class LichessClientTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.posts = []
        app = web.Application()
        app.router.add_get("/api/account", self.account)
        app.router.add_post("/api/board/seek", self.seek)
        app.router.add_post("/api/board/game/{game_id}/move/{code}", self.move)
        app.router.add_post("/api/board/game/{game_id}/{action}", self.action)
        app.router.add_get("/api/board/game/stream/{game_id}", self.game_stream)
        self.server = TestServer(app)
        await self.server.start_server()
        self.session = aiohttp.ClientSession()
        self.base_url = str(self.server.make_url("/"))

    async def asyncTearDown(self):
        await self.session.close()
        await self.server.close()

    def client(self, token="good"):
        return LichessClient(token=token, base_url=self.base_url, session=self.session, reconnect=False)

    async def account(self, request):
        if request.headers.get("Authorization") != "Bearer good":
            return web.json_response({"error": "No such token"}, status=401)
        return web.json_response({"id": "me", "username": "Me", "perfs": {"blitz": {"rating": 1650}}})

    async def seek(self, request):
        self.posts.append(("seek", dict(await request.post())))
        return web.Response(text="")

    async def move(self, request):
        code = request.match_info["code"]
        self.posts.append(("move", request.match_info["game_id"], code))
        if code == "e2e5":
            return web.json_response({"error": "Not your turn, or game already over"}, status=400)
        return web.json_response({"ok": True})

    async def action(self, request):
        self.posts.append((request.match_info["action"], request.match_info["game_id"]))
        return web.json_response({"ok": True})

    async def game_stream(self, request):
        resp = web.StreamResponse()
        await resp.prepare(request)
        await resp.write(b'{"type":"gameState","moves":"e2e4","wtime":1,"btime":2,"status":"started"}\n')
        return resp

    async def test_get_account_uses_rating_fallback(self):
        account = await self.client().get_account()
        self.assertEqual(account.id, "me")
        self.assertEqual(account.username, "Me")
        self.assertEqual(account.rating, 1650)

    async def test_bad_token_raises_auth_error(self):
        with self.assertRaises(AuthError) as ctx:
            await self.client("bad").get_account()
        self.assertEqual(ctx.exception.status, 401)

    async def test_rejected_move_raises_api_error(self):
        api = self.client()
        await api.make_move("g1", "e2e4")
        with self.assertRaises(ApiError) as ctx:
            await api.make_move("g1", "e2e5")
        self.assertEqual(ctx.exception.status, 400)
        self.assertEqual(self.posts, [("move", "g1", "e2e4"), ("move", "g1", "e2e5")])

    async def test_seek_posts_minutes_and_increment(self):
        await self.client().create_seek(300, 3)
        await self.client().create_seek(30, 0)
        self.assertEqual(self.posts[0], ("seek", {"rated": "false", "time": "5", "increment": "3"}))
        self.assertEqual(self.posts[1][1]["time"], "0.5")

    async def test_resign_and_abort(self):
        api = self.client()
        await api.resign("g1")
        await api.abort("g2")
        self.assertEqual(self.posts, [("resign", "g1"), ("abort", "g2")])

    async def test_game_stream(self):
        events, errors = [], []
        handle = self.client().stream_game("g1", events.append, errors.append)
        await handle.wait()
        self.assertEqual(handle.label, "game:g1")
        self.assertEqual(events[0]["moves"], "e2e4")
        self.assertEqual(errors, [])

    async def test_unreachable_server_raises_api_error(self):
        api = LichessClient(token="good", base_url="http://127.0.0.1:1", session=self.session)
        with self.assertRaises(ApiError):
            await api.resign("g1")

    def test_missing_token(self):
        with self.assertRaises(ConfigurationError):
            LichessClient(token="")


if __name__ == "__main__":
    unittest.main()
