"""Practice technical interview questions with AI-graded answers."""
