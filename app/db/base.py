from sqlalchemy.orm import declarative_base

# Create Base class for models
Base = declarative_base()
