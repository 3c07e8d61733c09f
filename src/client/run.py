#!/usr/bin/env python
import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from loguru import logger

from src.client.enroll.errors import EnrollmentError

EXIT_FATAL = 1
EXIT_FAILED = 2


def main() -> int:
    load_dotenv(Path.cwd() / ".env")

    # 延迟导入，使 .env 中的配置在 Config 实例化前生效
    from src.client.config import config
    from src.client.enroll.services import enroll_from_config

    logger.remove()
    logger.add(sys.stderr, level=config.log_level.upper())
    logger.info(f"当前应用环境：{os.getenv('APP_ENV')}")
    logger.debug(f"config: {config.model_dump_json(indent=4)}")

    try:
        result = enroll_from_config(config)
    except EnrollmentError as e:
        if e.fatal:
            logger.error(f"致命错误，终止注册: {e}")
            return EXIT_FATAL
        logger.error(f"本次注册失败: {e}")
        return EXIT_FAILED

    logger.info(f"注册成功: {result.model_dump_json(indent=4)}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
