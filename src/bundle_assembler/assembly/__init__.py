"""Bundle assembly: context resolution, rule execution, budgets, references, orchestration."""
