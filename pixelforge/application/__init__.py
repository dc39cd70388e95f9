"""
Application Layer - Use Cases and Orchestration

Coordinates Domain objects and Infrastructure adapters:
    - commands: CQRS write side (SubmitGenerationCommand)
    - queries: CQRS read side (job status, recovery, history, account)
    - services: Admission Gateway, Pipeline Planner, Worker Executor
    - ports: Protocols implemented by Infrastructure
    - tasks: Celery application and generation task
"""
