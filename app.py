from flask import Flask, jsonify

from meme_api import meme_api_bp

app = Flask(__name__)
app.register_blueprint(meme_api_bp)


@app.route("/health")
def health():
    return jsonify({"status": "ok"})


if __name__ == "__main__":
    app.run(debug=True)
