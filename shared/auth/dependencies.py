"""Dependencies de autenticación para FastAPI"""
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Callable, Optional, Dict
import logging
import uuid

from shared.auth.jwt_handler import decode_token
from shared.auth.permissions import Permission, permissions_for
from shared.database.connection import get_db
from shared.database.models import Role, User

logger = logging.getLogger(__name__)

security = HTTPBearer()


def _user_from_payload(payload: Optional[Dict]) -> Optional[Dict]:
    '''Construir el usuario de la request; los permisos se resuelven una sola vez aquí'''
    if payload is None:
        return None

    raw_user_id = payload.get('sub') or payload.get('user_id')
    try:
        user_id = uuid.UUID(str(raw_user_id))
    except (TypeError, ValueError):
        return None

    role = payload.get('role') or payload.get('app_metadata', {}).get('role') or Role.USER
    return {
        'user_id': user_id,
        'email': payload.get('email'),
        'role': role,
        'permissions': permissions_for(role),
    }


async def ensure_local_user(db: AsyncSession, current_user: Dict) -> User:
    '''
    Registrar localmente al usuario del token si todavía no existe.

    La identidad la entrega el token y se confía tal cual: el rol guardado se
    sincroniza con el del token. Es idempotente y tolera requests
    concurrentes del mismo usuario.
    '''
    user_id = current_user['user_id']
    user = await db.get(User, user_id)

    if user is None:
        email = (current_user.get('email') or '').strip() or None
        db.add(User(id=user_id, email=email, role=current_user['role']))
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            user = await db.get(User, user_id)
            if user is None:
                # El email ya está asociado a otra cuenta
                logger.warning(f"No se pudo registrar al usuario {user_id}: email {email} en uso")
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail='El email del token ya pertenece a otra cuenta',
                )
        else:
            logger.info(f"Usuario {user_id} registrado desde el token (rol {current_user['role']})")
            return await db.get(User, user_id)

    if user.role != current_user['role']:
        logger.info(f"Rol de {user_id} actualizado de {user.role} a {current_user['role']}")
        user.role = current_user['role']
    await db.commit()
    return user


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> Dict:
    '''Obtener usuario actual desde token JWT'''
    user = _user_from_payload(decode_token(credentials.credentials))

    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail='Token inválido o expirado',
            headers={'WWW-Authenticate': 'Bearer'},
        )
    return user


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(HTTPBearer(auto_error=False))
) -> Optional[Dict]:
    '''Obtener usuario opcional (para endpoints públicos)'''
    if not credentials:
        return None
    return _user_from_payload(decode_token(credentials.credentials))


def require_permission(permission: Permission) -> Callable:
    '''
    Dependency que exige un permiso de la tabla de roles

    Con el permiso verificado, el usuario queda registrado en la base para
    que checkouts, eventos y moderaciones puedan referenciarlo.
    '''
    async def dependency(
        current_user: Dict = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
    ) -> Dict:
        if permission not in current_user['permissions']:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Acceso denegado. Requiere el permiso {permission.value}",
            )
        await ensure_local_user(db, current_user)
        return current_user

    return dependency
