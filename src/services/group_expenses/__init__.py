"""
API групповых расходов для Telegram Mini App.

- Проверка подписи initData (telegram_auth)
- Группы: создание, список, удаление, вступление по инвайту
- Расходы группы: добавление, изменение и удаление автором
"""
