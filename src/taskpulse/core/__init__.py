"""
Report core.

Components:
- models.py: domain records (User variants, Task, TaskIndex, EmployeeStat, Snapshot, Delta)
- ports.py: Protocols for the tracker, LLM and chat boundaries
- errors.py: exception hierarchy
- pipeline.py: one report run, end to end
- state.py: AppState wired by the CLI bootstrap
"""
