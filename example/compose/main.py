"""
Minimal compose gateway example.

Run:
    uvicorn example.compose.main:app --reload

Then:
    curl -X POST localhost:8000/compose -H 'content-type: application/json' -d '{
        "queries": {
            "user":  {"path": "/users/:id", "params": {"id": "42"}, "body": {"@fields": ["id", "name"]}},
            "posts": {"path": "/users/42/posts", "body": {"@fields": ["title"]}}
        }
    }'

    # "@fields" on an ordinary endpoint
    curl -X POST localhost:8000/api/users/42 -H 'content-type: application/json' \
        -d '{"@fields": ["name", "profile.bio"]}'
"""

import asyncio

from restcompose import ComposeGateway, RouteRegistration

USERS = {"42": {"id": "42", "name": "X", "email": "x@y.z", "profile": {"bio": "hi", "avatar": "a.png"}}}
POSTS = {"42": [{"id": 1, "title": "First", "body": "..."}, {"id": 2, "title": "Second", "body": "..."}]}


class UserService:
    async def find_by_id(self, params, body=None):
        await asyncio.sleep(0)
        return USERS.get(params["id"])


class PostController:
    def list_for_user(self, params, body=None):
        return POSTS.get(params["id"], [])


gateway = ComposeGateway(
    routes=[
        RouteRegistration("/users/:id", UserService, "find_by_id", "GET"),
        RouteRegistration("/users/:id/posts", PostController, "list_for_user", "GET"),
    ],
    instances={UserService: UserService(), PostController: PostController()},
)

app = gateway.app

profiles = gateway.fields_router(prefix="/api")


@profiles.post("/users/{user_id}")
async def user_profile(user_id: str, payload: dict):
    return USERS.get(user_id)


app.include_router(profiles)
