# app/db/base.py
# Declarative база для моделей Product и CartItem.
# Модуль не импортирует модели (иначе циклический импорт): модели импортируют Base отсюда,
# а app.main и alembic/env.py импортируют модели, чтобы они попали в Base.metadata.

from sqlalchemy.orm import declarative_base

Base = declarative_base()
