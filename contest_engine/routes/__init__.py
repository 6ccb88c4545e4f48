from contest_engine.routes import competitions, registrations, teams, submissions, judging

all_routers = [
    competitions.router,
    registrations.router,
    teams.router,
    submissions.router,
    judging.router,
]
