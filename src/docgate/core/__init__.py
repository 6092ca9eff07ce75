"""Operation model, errors, logging and settings."""
