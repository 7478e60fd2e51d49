import logging

from flask import Flask, Response, abort, jsonify, request

import qr
import qr_render
from qr_errors import QRError

log = logging.getLogger(__name__)

DEFAULTS = {
    'DEFAULT_ECL': qr.MEDIUM,
    'BORDER': 4,
    'SCALE': 8,
    'PORT': 3001,
}


def create_app(config=None):
    app = Flask(__name__)
    app.config.update(DEFAULTS)
    app.config.from_prefixed_env('QR')
    if config:
        app.config.update(config)

    def _symbol():
        args = request.get_json(True)
        if 'content' not in args:
            abort(400, 'Missing field content')
        return qr.generate_qr(args['content'], args.get('version'),
                              args.get('ec', app.config['DEFAULT_ECL']),
                              args.get('mask', -1),
                              args.get('optimize', False))

    @app.errorhandler(QRError)
    def invalid(e):
        log.info('Rejected request: %s', e)
        return str(e), 400

    @app.route('/ws', methods=['POST'])
    def send_qr():
        return qr_render.to_bits(_symbol(), app.config['BORDER'])

    @app.route('/png', methods=['POST'])
    def send_png():
        png = qr_render.to_png(_symbol(), app.config['BORDER'],
                               app.config['SCALE'])
        return Response(png, mimetype='image/png')

    @app.route('/info', methods=['POST'])
    def send_info():
        symbol = _symbol()
        return jsonify(version=symbol.version, size=symbol.size,
                       ecl=symbol.ecl, mask=symbol.mask)

    return app


app = create_app()


if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO)
    app.run(port=app.config['PORT'])
