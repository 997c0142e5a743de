from typing import Sequence
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from ..models import Template, TemplateRole

def _guild_templates(guild_id: int):
    return select(Template).where(Template.guild_id == guild_id)

async def create_template_with_roles(
    session: AsyncSession, guild_id: int, name: str, roster_kind: str, capacities: dict[str, int]
) -> Template:
    """Создает шаблон ростера с вместимостью ролей."""
    template = Template(
        guild_id=guild_id,
        name=name,
        roster_kind=roster_kind,
        roles=[TemplateRole(role_name=role, capacity=capacity) for role, capacity in capacities.items()],
    )
    session.add(template)
    await session.commit()
    await session.refresh(template)
    return template

async def get_template_by_name(session: AsyncSession, guild_id: int, name: str) -> Template | None:
    result = await session.execute(_guild_templates(guild_id).where(Template.name == name))
    return result.scalar_one_or_none()

async def get_all_templates_for_guild(session: AsyncSession, guild_id: int) -> Sequence[Template]:
    """Шаблоны сервера в алфавитном порядке, роли подгружены."""
    result = await session.execute(_guild_templates(guild_id).order_by(Template.name))
    return result.scalars().all()

async def delete_template(session: AsyncSession, guild_id: int, name: str) -> bool:
    """Удаляет шаблон вместе с его ролями. False, если шаблона нет."""
    template = await get_template_by_name(session, guild_id, name)
    if template is None:
        return False
    await session.delete(template)
    await session.commit()
    return True

async def search_template_names(
    session: AsyncSession, guild_id: int, user_input: str, limit: int = 25
) -> Sequence[str]:
    """Имена шаблонов сервера, содержащие введенную строку (для автодополнения)."""
    result = await session.execute(
        select(Template.name)
        .where(Template.guild_id == guild_id, Template.name.ilike(f"%{user_input}%"))
        .order_by(Template.name)
        .limit(limit)
    )
    return result.scalars().all()
