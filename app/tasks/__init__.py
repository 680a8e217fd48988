"""백그라운드 유지보수 작업 패키지 (Background maintenance tasks)."""
