"""Registry routes: registered agents and their scheduled tasks."""

from __future__ import annotations

from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route


async def list_agents(request: Request) -> JSONResponse:
    db = request.app.state.db
    agents = [
        {"jid": jid, **agent.model_dump(mode="json")} for jid, agent in db.list_agents().items()
    ]
    return JSONResponse({"agents": agents, "count": len(agents)})


async def agent_tasks(request: Request) -> JSONResponse:
    db = request.app.state.db
    jid = request.path_params["jid"]
    agent = db.get_agent(jid)
    if agent is None:
        return JSONResponse({"error": f"Agent {jid} not found"}, status_code=404)
    tasks = [t.model_dump(mode="json") for t in db.get_tasks_for_owner(agent.folder)]
    return JSONResponse({"jid": jid, "tasks": tasks, "count": len(tasks)})


routes = [
    Route("/api/agents", list_agents),
    Route("/api/agents/{jid:str}/tasks", agent_tasks),
]
