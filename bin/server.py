import sys
import os
import uvicorn

# Ensure project root is in path
sys.path.append(os.getcwd())

if __name__ == "__main__":
    print("Starting ORM web server...")
    # The application is built by the factory in "ormweb.http_fastapi:create_app"
    uvicorn.run(
        "ormweb.http_fastapi:create_app",
        factory=True,
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        reload=os.getenv("ENV_TYPE", "prod") == "dev",
        log_level="info",
    )
