"""CLI точка входа для pushr."""
import sys
import asyncio
import argparse
from pathlib import Path

from pushr.config import DEFAULT_CONFIG_NAME


SAMPLE_CONFIG = """application: "My Application"
path: "/var/www/my-application"
default_environment: production
environments:
  - production
  - staging
default_branch: master
install_command: "bundle install"
commands:
  default: "bundle exec cap {environment} deploy:migrations BRANCH={branch}"
default_command: default
auth:
  scheme: basic
  username: admin
  password: change-me
# webhook_secret: "github-webhook-secret"
lock_timeout: 5
command_timeout: 900
stats_file: deploy_stats.yml
log_file: deploy.log
database_url: "sqlite:///pushr.db"
"""


def _load(args):
    from pushr.config import load_config

    try:
        return load_config(args.config)
    except FileNotFoundError:
        print(f"Error: Config file not found: {args.config}")
        print("Run 'pushr init' to create a config file")
        sys.exit(1)


def cmd_init(args):
    """Команда init - создание файла config.yaml."""
    config_path = Path(args.config)

    if config_path.exists() and not args.force:
        print(f"Error: Config file already exists: {config_path}")
        print("Use --force to overwrite")
        sys.exit(1)

    with open(config_path, 'w', encoding='utf-8') as f:
        f.write(SAMPLE_CONFIG)

    print(f"Config file created: {config_path}")


def cmd_serve(args):
    """Команда serve - запуск веб-сервера."""
    config = _load(args)

    import uvicorn
    from pushr.main import create_app

    uvicorn.run(
        create_app(config),
        host=args.host,
        port=args.port,
        log_level="info"
    )


def cmd_deploy(args):
    """Команда deploy - ручной запуск деплоя."""
    config = _load(args)

    from pushr.errors import PushrError
    from pushr.logs import setup_logging
    from pushr.main import build_deployer
    from pushr.schemas import DeployRequest

    deployer = build_deployer(config, setup_logging(config).getChild("deploy"))
    request = DeployRequest(
        environment=args.environment,
        branch=args.branch,
        name=args.name,
        command=args.deploy_command,
    )

    try:
        result = asyncio.run(deployer.deploy(deployer.target(request.environment), request))
    except PushrError as e:
        print(f"Error: {e.message}")
        sys.exit(1)

    print(result.output)
    if result.commit:
        print(f"Revision: {result.commit.revision} ({result.commit.message})")
    try:
        result.raise_for_status()
    except PushrError as e:
        print(f"Error: {e.message}")
        sys.exit(1)
    print(f"Deployed {config.application} to {result.environment} from {result.branch}")


def cmd_info(args):
    """Команда info - последний коммит и последние деплои."""
    config = _load(args)

    from pushr.errors import MetadataUnavailable
    from pushr.main import build_deployer

    deployer = build_deployer(config)
    try:
        info = asyncio.run(deployer.commit_info(deployer.target()))
        print(f"{config.application}: {info.revision} {info.message} ({info.author}, {info.when})")
    except MetadataUnavailable as e:
        print(f"{config.application}: repository info unavailable ({e.message})")

    for environment, record in sorted(deployer.stats().items()):
        print(f"  {environment}: {record.branch} by {record.name} at {record.at.isoformat()}")


def main(argv=None):
    """Главная функция CLI."""
    parser = argparse.ArgumentParser(
        description='pushr - деплой приложений по кнопке и по push-уведомлениям',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Примеры использования:
  pushr init                          Создать config.yaml
  pushr serve                         Запустить веб-сервер
  pushr serve --port 9000             Запустить на порту 9000
  pushr deploy -e staging -b feature  Задеплоить ветку в staging
  pushr info                          Показать последний коммит и деплои
        """
    )
    subparsers = parser.add_subparsers(dest='command', help='Доступные команды', metavar='COMMAND')

    def add_config(subparser):
        subparser.add_argument(
            '--config',
            default=DEFAULT_CONFIG_NAME,
            help='Путь к конфигурационному файлу (по умолчанию: config.yaml)'
        )

    # Команда init
    init_parser = subparsers.add_parser('init', help='Создать файл config.yaml')
    init_parser.add_argument(
        '--force',
        action='store_true',
        help='Перезаписать существующий config.yaml'
    )
    add_config(init_parser)

    # Команда serve
    serve_parser = subparsers.add_parser('serve', help='Запустить веб-сервер')
    serve_parser.add_argument(
        '--host',
        default='0.0.0.0',
        help='Хост для веб-сервера (по умолчанию: 0.0.0.0)'
    )
    serve_parser.add_argument(
        '--port',
        type=int,
        default=8009,
        help='Порт для веб-сервера (по умолчанию: 8009)'
    )
    add_config(serve_parser)

    # Команда deploy
    deploy_parser = subparsers.add_parser('deploy', help='Запустить деплой')
    deploy_parser.add_argument('-e', '--environment', help='Окружение (по умолчанию из конфигурации)')
    deploy_parser.add_argument('-b', '--branch', help='Ветка (по умолчанию из конфигурации)')
    deploy_parser.add_argument('-n', '--name', help='Имя оператора')
    deploy_parser.add_argument('-c', '--command', dest='deploy_command', help='Команда из секции commands')
    add_config(deploy_parser)

    # Команда info
    info_parser = subparsers.add_parser('info', help='Показать последний коммит и деплои')
    add_config(info_parser)

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(0)

    if args.command == 'init':
        cmd_init(args)
    elif args.command == 'serve':
        cmd_serve(args)
    elif args.command == 'deploy':
        cmd_deploy(args)
    elif args.command == 'info':
        cmd_info(args)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == '__main__':
    main()
